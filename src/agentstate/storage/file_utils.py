# src/agentstate/storage/file_utils.py
"""
Durable filesystem primitives shared by the disk-backed stores.

Appends and whole-file replacements are flushed and fsynced before they
return, so a write that reports success survives a process crash.
"""

import contextlib
import logging
import os
import shutil
import tempfile
from pathlib import Path
from typing import Union

from ..exceptions import ConfigError

logger = logging.getLogger(__name__)

PathLike = Union[str, os.PathLike]


def ensure_path(path: PathLike, create: bool = False, write_check: bool = False) -> Path:
    """
    Resolve a directory path and validate it.

    Args:
        path: Directory to check; ``~`` is expanded.
        create: Create the directory (and parents) when it does not exist.
        write_check: Require the directory to be writable.

    Returns:
        The absolute, normalised directory path.

    Raises:
        ConfigError: If the directory is missing (and not created), is not a
                     directory, or is not writable.
    """
    resolved = Path(os.path.expanduser(str(path))).resolve()
    if not resolved.exists():
        if not create:
            raise ConfigError(f"Directory does not exist: {resolved}")
        try:
            resolved.mkdir(parents=True, exist_ok=True)
            logger.debug(f"Created directory {resolved}")
        except OSError as e:
            raise ConfigError(f"Could not create directory {resolved}: {e}") from e
    if not resolved.is_dir():
        raise ConfigError(f"Path is not a directory: {resolved}")
    if write_check and not os.access(resolved, os.W_OK):
        raise ConfigError(f"Directory is not writable: {resolved}")
    return resolved


def write_bytes(path: Path, data: bytes, append: bool = False) -> None:
    """
    Durably write ``data`` to ``path``.

    With ``append=True`` the bytes are appended in one write call. Otherwise
    the file is replaced atomically: data goes to a temporary file in the same
    directory which is then renamed over the target, so readers only ever see
    the old or the new content.

    Raises:
        OSError: On any I/O failure. A failed replacement leaves the previous
                 file untouched.
    """
    if append:
        with open(path, "ab") as f:
            f.write(data)
            f.flush()
            os.fsync(f.fileno())
        return

    tmp = tempfile.NamedTemporaryFile("wb", delete=False, dir=str(path.parent),
                                      prefix=f".{path.name}.", suffix=".tmp")
    try:
        with tmp:
            tmp.write(data)
            tmp.flush()
            os.fsync(tmp.fileno())
        os.replace(tmp.name, path)
    except OSError:
        with contextlib.suppress(FileNotFoundError):
            os.unlink(tmp.name)
        raise


def truncate(path: Path, size: int) -> None:
    """Durably truncate ``path`` to ``size`` bytes."""
    with open(path, "r+b") as f:
        f.truncate(size)
        f.flush()
        os.fsync(f.fileno())


def delete_tree(path: Path) -> bool:
    """Remove a directory tree. Returns False if it did not exist."""
    if not path.exists():
        return False
    shutil.rmtree(path)
    return True
