"""Scratch files for the expression evaluation step.

The fully substituted working text is staged in a uniquely named file in
the cache directory before its fragments are rendered. Files are transient:
they are removed as soon as the evaluation step is done.
"""
import logging
import secrets
import tempfile
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator, Optional

from tpl.errors import ScratchFileError

logger = logging.getLogger(__name__)

SCRATCH_PREFIX = 'tpl_'
SCRATCH_SUFFIX = '.compiled'


def new_scratch_name() -> str:
    """Generate a collision-improbable scratch filename."""
    return f"{SCRATCH_PREFIX}{secrets.token_hex(16)}{SCRATCH_SUFFIX}"


def fallback_dir() -> Path:
    """Shared temporary directory used when the cache directory is unwritable."""
    return Path(tempfile.gettempdir())


def _write(path: Path, text: str) -> Optional[Path]:
    """Write ``text`` to ``path``, returning None when the location is unwritable."""
    try:
        path.write_text(text, encoding='utf-8')
    except (OSError, ValueError) as e:
        logger.debug(f"Cannot write scratch file {path}: {e}")
        _remove(path)
        return None
    return path


def _remove(path: Path) -> None:
    try:
        path.unlink()
    except FileNotFoundError:
        pass
    except OSError as e:
        logger.warning(f"Cannot remove scratch file {path}: {e}")


@contextmanager
def scratch_file(text: str, cache_dir: str) -> Iterator[Optional[Path]]:
    """Stage ``text`` in a scratch file for the duration of the block.

    Tries ``cache_dir`` first (created if missing), then the shared
    temporary directory. Yields the file path, or None when neither
    location is writable. The file is deleted on every exit path.

    Raises:
        ScratchFileError: If a file with the generated name already exists
            in ``cache_dir`` and cannot be removed
    """
    name = new_scratch_name()
    path = Path(cache_dir) / name

    try:
        path.parent.mkdir(parents=True, exist_ok=True)
    except OSError as e:
        logger.debug(f"Cannot create cache directory {path.parent}: {e}")

    # Scratch file must not exist yet
    if path.is_file():
        try:
            path.unlink()
        except OSError as e:
            raise ScratchFileError(f"Stale scratch file {path} cannot be removed: {e}") from e

    written = _write(path, text)
    if written is None:
        written = _write(fallback_dir() / name, text)
        if written is None:
            logger.warning(f"No writable scratch location for {name}")

    try:
        yield written
    finally:
        if written is not None:
            _remove(written)
