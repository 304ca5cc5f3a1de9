"""
Path resolution helpers for tools.
"""

import logging
from pathlib import Path

from conductor.constants import BINARY_MARKER, DEFAULT_BINARY_CHECK_CHUNK_SIZE
from conductor.types import PathLike

logger = logging.getLogger(__name__)


def resolve_path(base: PathLike, path: PathLike) -> Path:
    """
    Resolve a path relative to a base path.

    Parameters
    ----------
    base : PathLike
        Base path for resolving relative paths.
    path : PathLike
        Path to resolve (can be absolute or relative).

    Returns
    -------
    Path
        Resolved absolute path.

    Examples
    --------
    >>> resolve_path(Path("/home/user"), "documents/file.txt")
    PosixPath('/home/user/documents/file.txt')
    >>> resolve_path(Path("/home/user"), "/absolute/path.txt")
    PosixPath('/absolute/path.txt')
    """
    path_obj: Path = Path(path)
    if path_obj.is_absolute():
        return path_obj.resolve()
    return Path(base).resolve() / path_obj


def display_path(path: PathLike, cwd: Path) -> str:
    """Path relative to ``cwd`` when inside it, absolute otherwise."""
    try:
        return str(Path(path).relative_to(cwd))
    except ValueError:
        return str(path)


def ensure_parent_directory(path: PathLike) -> Path:
    path_obj: Path = Path(path)
    path_obj.parent.mkdir(parents=True, exist_ok=True)
    return path_obj


def is_binary_file(path: PathLike) -> bool:
    """
    Check if a file is binary by looking for null bytes in its first chunk.

    Examples
    --------
    >>> is_binary_file("image.png")
    True
    """
    path_obj: Path = Path(path)
    if not path_obj.is_file():
        return False

    try:
        with open(path_obj, "rb") as f:
            return BINARY_MARKER in f.read(DEFAULT_BINARY_CHECK_CHUNK_SIZE)
    except OSError as e:
        logger.warning(f"Failed to check if file is binary: {path_obj}: {e}")
        return False
