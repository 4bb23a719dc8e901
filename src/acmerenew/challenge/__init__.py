"""Challenge provisioners: make ACME challenges answerable, then clean up."""

from acmerenew.challenge.base import (
    ChallengeArtifact,
    ChallengeProvisioner,
    ProvisioningContext,
    ProvisioningError,
)
from acmerenew.challenge.callback import CallbackProvisioner
from acmerenew.challenge.http01 import Http01Provisioner
from acmerenew.challenge.registry import load_provisioner
from acmerenew.challenge.script import ScriptProvisioner

__all__ = [
    "CallbackProvisioner",
    "ChallengeArtifact",
    "ChallengeProvisioner",
    "Http01Provisioner",
    "ProvisioningContext",
    "ProvisioningError",
    "ScriptProvisioner",
    "load_provisioner",
]
