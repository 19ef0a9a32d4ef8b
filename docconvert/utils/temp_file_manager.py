"""
Scratch space management for office-suite conversions.

Each soffice run gets its own directory holding the input file, the output
file and a private user profile. The directory is removed when the
conversion finishes, successfully or not.
"""

import os
import shutil
import tempfile
import uuid
import weakref
from contextlib import contextmanager
from pathlib import Path
from typing import Dict, Iterator, List, Optional

from ..config import get_temp_dir
from .logging_config import get_logger

logger = get_logger(__name__)

# Service-specific subdirectories
SERVICE_DIRS = {
    "office": "office",
}


class TempFileError(Exception):
    """Custom exception for temporary file operations."""
    pass


class ScratchDirectory:
    """A per-conversion working directory."""

    def __init__(self, path: Path):
        self.path = path
        self.output_dir = path / "out"
        self.profile_dir = path / "profile"

    def write_input(self, content: bytes, filename: str) -> Path:
        """Write the uploaded bytes under ``filename`` and return the path."""
        input_path = self.path / filename
        try:
            with open(input_path, 'wb') as f:
                f.write(content)
        except OSError as e:
            logger.error(f"Failed to write input file {input_path}: {e}")
            raise TempFileError(f"Failed to create input file: {str(e)}")
        logger.debug(f"Wrote {len(content)} bytes to {input_path}")
        return input_path

    def output_path(self, stem: str, extension: str) -> Path:
        ext = extension if extension.startswith(".") else f".{extension}"
        return self.output_dir / f"{stem}{ext}"

    def __repr__(self):
        return f"ScratchDirectory(path={self.path})"


class TempFileManager:
    """
    Creates scratch directories under a service-specific base directory.

    Directories still present when the manager is garbage collected are
    removed as a last resort.
    """

    def __init__(self, base_dir: Optional[str] = None, service: str = "office"):
        self.base_dir = Path(base_dir or get_temp_dir())
        self.service = service
        self.service_dir = self.base_dir / SERVICE_DIRS.get(service, service)
        self._active: List[Path] = []
        self._finalizer = weakref.finalize(self, _remove_all, self._active)

        self.service_dir.mkdir(parents=True, exist_ok=True)

    def create_scratch_directory(self, prefix: str = "job") -> ScratchDirectory:
        """Create a fresh, uniquely named scratch directory."""
        try:
            path = Path(tempfile.mkdtemp(prefix=f"{prefix}_{uuid.uuid4().hex[:8]}_",
                                         dir=self.service_dir))
        except OSError as e:
            logger.error(f"Failed to create scratch directory in {self.service_dir}: {e}")
            raise TempFileError(f"Failed to create scratch directory: {str(e)}")
        self._active.append(path)
        scratch = ScratchDirectory(path)
        # Kept apart from the input so same-extension conversions cannot read the input back
        scratch.output_dir.mkdir()
        logger.debug(f"Created scratch directory: {path}")
        return scratch

    def cleanup(self, scratch: ScratchDirectory):
        """Remove a scratch directory and everything in it."""
        _remove_tree(scratch.path)
        if scratch.path in self._active:
            self._active.remove(scratch.path)

    @contextmanager
    def scratch_directory(self, prefix: str = "job") -> Iterator[ScratchDirectory]:
        """
        Context manager yielding a scratch directory that is always removed.

        Usage:
            with get_temp_manager().scratch_directory() as scratch:
                source = scratch.write_input(data, "source.docx")
                # run soffice with --outdir scratch.path
        """
        scratch = self.create_scratch_directory(prefix)
        try:
            yield scratch
        finally:
            self.cleanup(scratch)


def _remove_tree(path: Path):
    try:
        if os.path.exists(path):
            shutil.rmtree(path)
            logger.debug(f"Cleaned up scratch directory: {path}")
    except OSError as e:
        logger.warning(f"Failed to cleanup scratch directory {path}: {e}")


def _remove_all(paths: List[Path]):
    for path in list(paths):
        _remove_tree(path)
    paths.clear()


# Global manager instances
_managers: Dict[str, TempFileManager] = {}


def get_temp_manager(service: str = "office", base_dir: Optional[str] = None) -> TempFileManager:
    """
    Get or create a scratch manager for a service.

    Args:
        service: Service name used as subdirectory
        base_dir: Base directory (defaults to DOCCONVERT_TEMP_DIR)

    Returns:
        TempFileManager instance
    """
    base = base_dir or get_temp_dir()
    key = f"{service}:{base}"
    if key not in _managers:
        _managers[key] = TempFileManager(base_dir=base, service=service)
    return _managers[key]
