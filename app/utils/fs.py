"""
Filesystem utilities for saving downloaded conversion results.

This module provides the local "save as" used when the orchestrator runs
outside a browser, with path validation so that names coming from the
conversion service cannot escape the output directory.
"""

from pathlib import Path, PurePath

from loguru import logger


def ensure_directory(path: str | Path) -> Path:
    """
    Ensure directory exists, creating it if necessary.

    Args:
        path: Directory path to ensure

    Returns:
        Path object of the directory

    Raises:
        OSError: If directory cannot be created
    """
    path = Path(path)

    try:
        path.mkdir(parents=True, exist_ok=True)
        logger.debug(f"Directory ensured: {path}")
        return path
    except OSError as exc:
        logger.error(f"Failed to create directory {path}: {exc}")
        raise


def safe_filename(name: str) -> str:
    """
    Reduce a file name to its final component.

    Raises:
        ValueError: If nothing usable is left
    """
    candidate = PurePath(name.replace("\\", "/")).name.strip()
    if candidate in ("", ".", ".."):
        raise ValueError(f"Invalid file name: {name!r}")
    return candidate


class DirectorySaver:
    """Save callback writing downloaded artifacts into a directory."""

    def __init__(self, directory: str | Path, overwrite: bool = False):
        """
        Initialize the saver.

        Args:
            directory: Output directory, created on first save
            overwrite: Replace existing files instead of picking a new name
        """
        self.directory = Path(directory)
        self.overwrite = overwrite
        self.saved: list[Path] = []

    def _target(self, name: str) -> Path:
        target = self.directory / safe_filename(name)
        if self.overwrite or not target.exists():
            return target
        stem, suffix = target.stem, target.suffix
        counter = 1
        while target.exists():
            target = self.directory / f"{stem} ({counter}){suffix}"
            counter += 1
        return target

    def __call__(self, name: str, content: bytes) -> Path:
        ensure_directory(self.directory)
        target = self._target(name)
        target.write_bytes(content)
        self.saved.append(target)
        logger.info(f"Saved {target} ({len(content)} bytes)")
        return target
