"""Challenge provisioner registry.

Resolves the ``provisioner`` name of a certificate entry to an
instance: a built-in type or a custom ``ext:`` extension.

Usage::

    from acmerenew.challenge.registry import load_provisioner

    provisioner = load_provisioner("http-01")
    provisioner = load_provisioner("ext:mycompany.acme.Route53Provisioner", {"zone": "..."})
"""

from __future__ import annotations

import importlib
import logging
from typing import Any

from acmerenew.challenge.base import ChallengeProvisioner, ProvisioningError
from acmerenew.core.types import ChallengeType

log = logging.getLogger(__name__)

# Maps config string -> (module_path, class_name)
_BUILTIN_PROVISIONERS: dict[str, tuple[str, str]] = {
    "http-01": ("acmerenew.challenge.http01", "Http01Provisioner"),
    "script": ("acmerenew.challenge.script", "ScriptProvisioner"),
}


def load_provisioner(
    name: str,
    options: dict[str, Any] | None = None,
) -> ChallengeProvisioner:
    """Instantiate the provisioner configured as *name*.

    Raises
    ------
    ProvisioningError
        If the name is unknown or the class cannot be loaded.

    """
    if name in _BUILTIN_PROVISIONERS:
        mod_path, cls_name = _BUILTIN_PROVISIONERS[name]
        cls = getattr(importlib.import_module(mod_path), cls_name)
    elif name.startswith("ext:"):
        cls = _load_external(name[4:])
    else:
        msg = (
            f"Unknown provisioner '{name}'. Known types: "
            f"{sorted(_BUILTIN_PROVISIONERS)}, or 'ext:package.module.Class'"
        )
        raise ProvisioningError(msg)

    _validate_class(cls, name)
    provisioner = cls(options)
    log.debug("Loaded challenge provisioner %s", name)
    return provisioner


def _load_external(fqn: str) -> type:
    """Import an external provisioner class by fully-qualified name."""
    module_path, _, cls_name = fqn.rpartition(".")
    if not module_path:
        msg = (
            f"Invalid external provisioner '{fqn}': must be fully "
            "qualified (e.g. 'mypackage.module.ClassName')"
        )
        raise ProvisioningError(msg)

    try:
        module = importlib.import_module(module_path)
        cls = getattr(module, cls_name)
    except (ImportError, AttributeError) as exc:
        msg = f"Cannot load external provisioner '{fqn}': {exc}"
        raise ProvisioningError(msg) from exc

    if not (isinstance(cls, type) and issubclass(cls, ChallengeProvisioner)):
        msg = f"External provisioner '{fqn}' must be a subclass of ChallengeProvisioner"
        raise ProvisioningError(msg)
    return cls


def _validate_class(cls: type, label: str) -> None:
    """Verify that a provisioner class declares a usable challenge type."""
    challenge_type = getattr(cls, "challenge_type", None)
    if not isinstance(challenge_type, ChallengeType):
        msg = (
            f"Provisioner class '{label}' has challenge_type="
            f"{challenge_type!r}, which is not a valid ChallengeType"
        )
        raise ProvisioningError(msg)
