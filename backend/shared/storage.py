"""Storage abstraction for match persistence.

Match files are the JSON export of a single match, one file per match id.
Files are written with owner-only permissions (0o600) inside an
owner-only directory (0o700) as a filesystem hygiene measure.
"""

import contextlib
import os
import tempfile
from pathlib import Path
from typing import Protocol

import structlog

logger = structlog.get_logger()

# Owner-only directory permissions for match storage.
_MATCH_DIR_MODE = 0o700

# Owner-only file permissions for match data files.
_MATCH_FILE_MODE = 0o600


class MatchStorage(Protocol):
    """Protocol for persisting exported matches."""

    def save_match(self, match_id: str, content: str) -> None: ...

    def load_match(self, match_id: str) -> str | None: ...

    def delete_match(self, match_id: str) -> None: ...


class LocalMatchStorage:
    """Writes match JSON files to the local filesystem.

    Files are created with owner-only read/write (0o600) inside an
    owner-only directory (0o700) as a filesystem hygiene measure.
    """

    def __init__(self, match_dir: str) -> None:
        self._match_dir = Path(match_dir).resolve()

    def _path_for(self, match_id: str) -> Path:
        target = (self._match_dir / f"{match_id}.json").resolve()
        if not target.is_relative_to(self._match_dir):
            raise ValueError(f"Path traversal rejected: '{match_id}' resolves outside match directory")
        return target

    def save_match(self, match_id: str, content: str) -> None:
        """Save match content under the configured directory.

        Creates the directory lazily on first write with owner-only permissions
        (0o700). Writes match files atomically via temp-file-then-rename with
        owner-only permissions (0o600). Rejects path traversal attempts that
        would place the file outside the match root.
        """
        target = self._path_for(match_id)

        self._match_dir.mkdir(mode=_MATCH_DIR_MODE, parents=True, exist_ok=True)
        self._match_dir.chmod(_MATCH_DIR_MODE)

        fd, tmp_path = tempfile.mkstemp(dir=str(self._match_dir), suffix=".tmp", prefix=".match_")
        fd_owned = True
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                fd_owned = False  # os.fdopen took ownership; it will close fd
                f.write(content)
                f.flush()
                os.fsync(f.fileno())
            os.chmod(tmp_path, _MATCH_FILE_MODE)  # noqa: PTH101
            Path(tmp_path).replace(target)
        except BaseException:
            if fd_owned:
                with contextlib.suppress(OSError):
                    os.close(fd)
            with contextlib.suppress(OSError):
                Path(tmp_path).unlink()
            raise
        logger.info("saved match", match_id=match_id, path=str(target))

    def load_match(self, match_id: str) -> str | None:
        """Return the stored content, or None if the match was never saved."""
        target = self._path_for(match_id)
        if not target.exists():
            return None
        return target.read_text(encoding="utf-8")

    def delete_match(self, match_id: str) -> None:
        """Remove the stored match; a missing file is not an error."""
        target = self._path_for(match_id)
        target.unlink(missing_ok=True)
        logger.info("deleted match", match_id=match_id)
