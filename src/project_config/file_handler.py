"""File handler module: directory validation, encoding-aware reads, atomic writes.

Provides the file I/O primitives used by the config file store and the
snapshot store.  Writes follow a stage-then-replace discipline: content is
written to a temp file beside its target and only moved into place with
``os.replace()`` once every file in the batch has been staged.
"""

import logging
import os
import tempfile
from pathlib import Path

from charset_normalizer import from_bytes

logger = logging.getLogger(__name__)

# =============================================================================
# Path Validation
# =============================================================================


def validate_directory(path_str: str | Path, create: bool = False) -> Path:
    """Validate and resolve a directory path.

    Args:
        path_str: Directory path (relative paths resolve against CWD).
        create: Create the directory when it does not exist.

    Returns:
        Resolved Path object pointing to the directory.

    Raises:
        ValueError: If the path exists but is not a directory, or does not
            exist and *create* is False.
    """
    resolved = Path(path_str).expanduser().resolve()
    if resolved.exists() and not resolved.is_dir():
        raise ValueError(f"Path is not a directory: {path_str}")
    if not resolved.exists():
        if not create:
            raise ValueError(f"Directory not found: {path_str}")
        resolved.mkdir(parents=True, exist_ok=True)
    return resolved


def relative_posix(path: Path, root: Path) -> str:
    """Return *path* relative to *root* with forward slashes."""
    return str(path.relative_to(root)).replace("\\", "/")


# =============================================================================
# File Read
# =============================================================================


def read_file_with_encoding(path: Path) -> tuple[str, str]:
    """Read a file with automatic encoding detection.

    Reads raw bytes first, then uses charset-normalizer to detect encoding.
    Defaults to UTF-8 for empty files or when detection fails.

    Args:
        path: Path to the file to read.

    Returns:
        Tuple of (content_string, detected_encoding).
    """
    raw = path.read_bytes()
    if not raw:
        return ("", "utf-8")

    try:
        return (raw.decode("utf-8"), "utf-8")
    except UnicodeDecodeError:
        pass

    result = from_bytes(raw).best()
    if result is None:
        logger.warning("Could not detect encoding of %s; assuming utf-8", path)
        return (raw.decode("utf-8", errors="replace"), "utf-8")
    return (str(result), result.encoding)


# =============================================================================
# Atomic Write
# =============================================================================


def stage_file(path: Path, content: str, encoding: str = "utf-8") -> Path:
    """Write *content* to a temp file in *path*'s directory.

    Creates parent directories as needed.  The caller moves the temp file
    into place with ``commit_staged()`` or deletes it with
    ``discard_staged()``.

    Returns:
        Path of the temp file.
    """
    path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp_path = tempfile.mkstemp(
        dir=str(path.parent), prefix=f".{path.name}.", suffix=".tmp"
    )
    try:
        with os.fdopen(fd, "wb") as fh:
            fh.write(content.encode(encoding))
    except BaseException:
        # Clean up temp file on any failure.
        try:
            os.unlink(tmp_path)
        except OSError:
            pass
        raise
    return Path(tmp_path)


def commit_staged(staged: list[tuple[Path, Path]]) -> None:
    """Move each staged ``(tmp, target)`` pair into place."""
    for tmp, target in staged:
        os.replace(tmp, target)


def discard_staged(staged: list[tuple[Path, Path]]) -> None:
    """Delete staged temp files, ignoring ones already gone."""
    for tmp, _target in staged:
        try:
            os.unlink(tmp)
        except OSError:
            pass


def write_file_atomic(
    path: Path, content: str, encoding: str = "utf-8"
) -> int:
    """Write *content* to *path* so readers never see a partial file.

    Returns:
        Number of bytes written.
    """
    tmp = stage_file(path, content, encoding)
    try:
        commit_staged([(tmp, path)])
    except BaseException:
        discard_staged([(tmp, path)])
        raise
    return len(content.encode(encoding))
