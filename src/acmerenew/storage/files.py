"""Filesystem collaborator: directories and files with ownership and mode.

Every file write is an atomic replace: content goes to a temporary
file in the destination directory, receives its final mode and owner,
is flushed to disk and then renamed over the target.  Readers therefore
see either the old content or the new content, never a partial write.
"""

from __future__ import annotations

import contextlib
import logging
import os
import shutil
import tempfile
from pathlib import Path

from acmerenew.core.errors import AcmeRenewError

log = logging.getLogger(__name__)


class FileManagerError(AcmeRenewError):
    """Raised when a directory or file cannot be created or written."""


class FileManager:
    """Create directories and files with the requested ownership/permissions.

    ``owner`` and ``group`` are user/group names; ``None`` leaves the
    corresponding id unchanged (useful when not running as root).
    """

    def create_directory(
        self,
        path: str | Path,
        *,
        owner: str | None = None,
        group: str | None = None,
        mode: int = 0o755,
        recursive: bool = True,
    ) -> Path:
        """Ensure *path* exists as a directory.

        Missing parents are created when *recursive* is true.  Mode and
        ownership are applied to *path* itself only.
        """
        directory = Path(path)
        try:
            directory.mkdir(mode=mode, parents=recursive, exist_ok=True)
            directory.chmod(mode)
            self._chown(directory, owner, group)
        except (OSError, LookupError) as exc:
            msg = f"Failed to create directory '{directory}': {exc}"
            raise FileManagerError(msg) from exc
        return directory

    def write_file(
        self,
        path: str | Path,
        content: str | bytes,
        *,
        owner: str | None = None,
        group: str | None = None,
        mode: int = 0o644,
        sensitive: bool = False,
    ) -> Path:
        """Create or atomically replace *path* with *content*.

        *sensitive* only affects logging: the size of the content is
        never logged for sensitive files.
        """
        target = Path(path)
        data = content.encode("utf-8") if isinstance(content, str) else content

        tmp_path: Path | None = None
        try:
            fd, tmp_name = tempfile.mkstemp(
                dir=target.parent,
                prefix=f".{target.name}.",
                suffix=".tmp",
            )
            tmp_path = Path(tmp_name)
            with os.fdopen(fd, "wb") as fh:
                fh.write(data)
                fh.flush()
                os.fsync(fh.fileno())
            tmp_path.chmod(mode)
            self._chown(tmp_path, owner, group)
            tmp_path.replace(target)
        except (OSError, LookupError) as exc:
            if tmp_path is not None:
                with contextlib.suppress(OSError):
                    tmp_path.unlink()
            msg = f"Failed to write file '{target}': {exc}"
            raise FileManagerError(msg) from exc

        if sensitive:
            log.debug("Wrote %s (mode %o, sensitive)", target, mode)
        else:
            log.debug("Wrote %s (mode %o, %d bytes)", target, mode, len(data))
        return target

    def delete_file(self, path: str | Path) -> bool:
        """Best-effort delete.  Returns ``True`` if a file was removed."""
        target = Path(path)
        try:
            target.unlink()
        except FileNotFoundError:
            log.debug("Nothing to delete at %s", target)
            return False
        except OSError as exc:
            log.warning("Could not delete %s: %s", target, exc)
            return False
        log.debug("Deleted %s", target)
        return True

    @staticmethod
    def _chown(path: Path, owner: str | None, group: str | None) -> None:
        if owner is None and group is None:
            return
        shutil.chown(path, user=owner, group=group)
