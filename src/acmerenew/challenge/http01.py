"""HTTP-01 challenge provisioner (RFC 8555 §8.3).

Writes the key authorization to
``{web_root}/.well-known/acme-challenge/{token}`` so the CA can fetch
it over plain HTTP, and deletes the file once validation is over.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import TYPE_CHECKING

from acmerenew.challenge.base import (
    ChallengeArtifact,
    ChallengeProvisioner,
    ProvisioningContext,
    ProvisioningError,
)
from acmerenew.core.types import ChallengeType
from acmerenew.storage.files import FileManagerError

if TYPE_CHECKING:
    from acmerenew.acme.models import Authorization
    from acmerenew.storage.files import FileManager

log = logging.getLogger(__name__)

TOKEN_DIRECTORY_MODE = 0o755
TOKEN_FILE_MODE = 0o644


class Http01Provisioner(ChallengeProvisioner):
    """Default provisioner: token files under the configured web root."""

    challenge_type = ChallengeType.HTTP_01

    def install(
        self,
        authorization: Authorization,
        context: ProvisioningContext,
    ) -> ChallengeArtifact:
        challenge = self.challenge_for(authorization)
        settings = context.settings
        token_path = Path(settings.web_root) / challenge.filename

        try:
            context.files.create_directory(
                token_path.parent,
                owner=settings.owner,
                group=settings.group,
                mode=TOKEN_DIRECTORY_MODE,
                recursive=True,
            )
            context.files.write_file(
                token_path,
                challenge.file_content,
                owner=settings.owner,
                group=settings.group,
                mode=TOKEN_FILE_MODE,
            )
        except FileManagerError as exc:
            msg = f"Cannot install HTTP-01 token for {authorization.name}: {exc.detail}"
            raise ProvisioningError(msg) from exc

        log.debug("Installed HTTP-01 token for %s at %s", authorization.name, token_path)
        return ChallengeArtifact(
            name=authorization.name,
            token=challenge.token,
            location=str(token_path),
            handle=context.files,
        )

    def remove(self, artifact: ChallengeArtifact) -> None:
        files: FileManager | None = artifact.handle
        if files is None or artifact.location is None:
            log.warning("No token file recorded for %s, nothing to remove", artifact.name)
            return
        files.delete_file(artifact.location)
