"""ACMERENEW configuration loader.

Lifecycle::

    # 1. read YAML/JSON, resolve ${VAR} references
    # 2. validate against the bundled JSON schema
    # 3. run cross-field checks, collecting every problem
    # 4. materialise the frozen settings tree
    settings = load_config("/etc/acmerenew/config.yaml")

There is no module-level singleton: the returned
:class:`AcmeRenewSettings` is passed explicitly to every component.
"""

from __future__ import annotations

import json
import logging
import os
import re
from pathlib import Path
from typing import Any

import jsonschema
import yaml

from acmerenew.config.settings import AcmeRenewSettings, build_settings
from acmerenew.core.errors import AcmeRenewError

_SCHEMA_PATH = Path(__file__).parent / "schema.json"

_ENV_RE = re.compile(
    r"^\$\{([^}:]+?)(?::-(.*))?\}$",
    re.DOTALL,
)

_BUILTIN_PROVISIONERS = frozenset({"http-01", "script"})

_CLASS_PATH_RE = re.compile(
    r"^[a-zA-Z_][a-zA-Z0-9_]*(\.[a-zA-Z_][a-zA-Z0-9_]*)+$",
)

log = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Validation error collector
# ---------------------------------------------------------------------------


class ConfigValidationError(AcmeRenewError):
    """Raised when schema or cross-field validation finds problems."""

    def __init__(self, errors: list[str]) -> None:
        self.errors = errors
        body = "\n".join(f"  - {e}" for e in errors)
        super().__init__(f"Configuration validation failed:\n{body}")


# ---------------------------------------------------------------------------
# Environment variable resolution
# ---------------------------------------------------------------------------


def _resolve_value(value: str, path: str) -> str:
    """Replace ``${VAR}`` or ``${VAR:-default}`` with env var value."""
    match = _ENV_RE.match(value)
    if match is None:
        return value
    var_name = match.group(1)
    fallback = match.group(2)
    resolved = os.environ.get(var_name)
    if resolved is not None:
        return resolved
    if fallback is not None:
        return fallback
    raise ConfigValidationError(
        [
            f"Environment variable '${{{var_name}}}' referenced "
            f"at '{path}' is not set and has no default",
        ],
    )


def _resolve_env_vars(
    data: Any,  # noqa: ANN401
    path: str = "",
) -> None:
    """Walk *data* in-place and resolve ``${VAR}``/``${VAR:-default}`` strings."""
    if isinstance(data, dict):
        for key in data:
            child_path = f"{path}.{key}" if path else key
            if isinstance(data[key], str):
                data[key] = _resolve_value(data[key], child_path)
            elif isinstance(data[key], (dict, list)):
                _resolve_env_vars(data[key], child_path)
    elif isinstance(data, list):
        for idx, item in enumerate(data):
            child_path = f"{path}[{idx}]"
            if isinstance(item, str):
                data[idx] = _resolve_value(item, child_path)
            elif isinstance(item, (dict, list)):
                _resolve_env_vars(item, child_path)


# ---------------------------------------------------------------------------
# Schema validation
# ---------------------------------------------------------------------------


def _load_schema() -> dict:
    return json.loads(_SCHEMA_PATH.read_text(encoding="utf-8"))


def _schema_errors(data: dict) -> list[str]:
    validator = jsonschema.Draft7Validator(_load_schema())
    errors = []
    for error in sorted(validator.iter_errors(data), key=lambda e: list(e.absolute_path)):
        location = ".".join(str(p) for p in error.absolute_path) or "(root)"
        errors.append(f"{location}: {error.message}")
    return errors


# ---------------------------------------------------------------------------
# Cross-field validation
# ---------------------------------------------------------------------------


def _additional_checks(data: dict) -> list[str]:  # noqa: C901
    """Semantic & cross-field validation run after the schema passes."""
    errors: list[str] = []
    acme = data.get("acme") or {}

    directory_url = acme.get("directory_url", "")
    if directory_url and not directory_url.startswith(("https://", "http://")):
        errors.append(
            f"acme.directory_url must be an http(s) URL (got '{directory_url}')",
        )

    crt_paths: dict[str, int] = {}
    for idx, entry in enumerate(data.get("certificates") or []):
        prefix = f"certificates[{idx}]"

        common_name = (entry.get("common_name") or "").strip()
        if not common_name:
            errors.append(
                f"{prefix}.common_name must not be empty; "
                "the effective name set would be empty",
            )

        crt_path = entry.get("crt_path")
        if crt_path in crt_paths:
            errors.append(
                f"{prefix}.crt_path '{crt_path}' is already used by "
                f"certificates[{crt_paths[crt_path]}]",
            )
        elif crt_path:
            crt_paths[crt_path] = idx

        if crt_path and crt_path == entry.get("key_path"):
            errors.append(f"{prefix}.crt_path and key_path must differ")

        provisioner = entry.get("provisioner", "http-01")
        options = entry.get("provisioner_options") or {}
        if provisioner.startswith("ext:"):
            if not _CLASS_PATH_RE.match(provisioner[4:]):
                errors.append(
                    f"{prefix}.provisioner '{provisioner}' is not a valid "
                    "fully qualified Python class path "
                    "(expected 'ext:package.module.ClassName')",
                )
        elif provisioner not in _BUILTIN_PROVISIONERS:
            errors.append(
                f"{prefix}.provisioner contains unknown type '{provisioner}'. "
                f"Known types: {sorted(_BUILTIN_PROVISIONERS)}. "
                "Use 'ext:fully.qualified.Class' for custom provisioners.",
            )
        elif provisioner == "script":
            for required in ("deploy_script", "cleanup_script"):
                if not options.get(required):
                    errors.append(
                        f"{prefix}.provisioner_options.{required} is required "
                        "when provisioner is 'script'",
                    )

    if not data.get("certificates"):
        log.warning("No certificates configured; nothing will be managed")

    return errors


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


def load_config_data(data: dict) -> AcmeRenewSettings:
    """Validate an already-parsed config mapping and build settings.

    *data* is modified in place by env-var resolution.

    Raises
    ------
    ConfigValidationError
        If the schema or any cross-field check fails.

    """
    if not isinstance(data, dict):
        msg = "Configuration root must be a mapping"
        raise ConfigValidationError([msg])

    # Env vars are resolved before schema validation so that substituted
    # values are checked against enum constraints in the schema.
    _resolve_env_vars(data)

    errors = _schema_errors(data)
    if errors:
        raise ConfigValidationError(errors)

    errors = _additional_checks(data)
    if errors:
        raise ConfigValidationError(errors)

    return build_settings(data)


def load_config(config_file: str | Path) -> AcmeRenewSettings:
    """Load, validate and build settings from a YAML or JSON file."""
    path = Path(config_file)
    try:
        raw = path.read_text(encoding="utf-8")
    except OSError as exc:
        msg = f"Cannot read configuration file '{path}': {exc}"
        raise ConfigValidationError([msg]) from exc

    try:
        data = yaml.safe_load(raw) or {}
    except yaml.YAMLError as exc:
        msg = f"Configuration file '{path}' is not valid YAML: {exc}"
        raise ConfigValidationError([msg]) from exc

    settings = load_config_data(data)
    log.debug(
        "Loaded configuration from %s (%d certificate(s))",
        path,
        len(settings.certificates),
    )
    return settings
