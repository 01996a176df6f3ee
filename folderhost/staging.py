"""
Staged writes.

Uploaded content first lands in a private mirror of the hosted directory
(the staging subdirectory under the temporary directory) and only becomes
visible once committed. Every write gets its own staged file, so concurrent
uploads to the same destination never share one; they are not serialized
either, and whichever commit runs last wins.
"""
from __future__ import annotations

import errno
import os
import shutil
import tempfile
from pathlib import Path, PurePosixPath
from typing import Optional, Union

from .errors import IncompleteWrite, WriteDisabled
from .paths import is_within, normalize_parts
from .util import log

COPY_CHUNK_SIZE = 64 * 1024
STAGED_SUFFIX = ".part"


def _relative(relative_path: Union[str, PurePosixPath]) -> PurePosixPath:
    # Raises Outside for anything that climbs out of the mirror
    return PurePosixPath(*normalize_parts(str(relative_path)))


def staged_path(config, relative_path) -> Path:
    """Mirror location of ``relative_path`` inside the staging subdirectory.

    Staged files for ``relative_path`` are created next to it, named after it.
    """
    if config.temp_directory is None:
        raise WriteDisabled()
    return config.temp_directory.path.joinpath(*_relative(relative_path).parts)


def _check_staged(config, staged: Path) -> Path:
    if config.temp_directory is None:
        raise WriteDisabled()
    staged = Path(staged)
    if not is_within(staged, config.temp_directory.path):
        raise ValueError(f"{staged.name} is not a staged file")
    return staged


def _remove_quietly(path: Path) -> None:
    try:
        path.unlink()
    except FileNotFoundError:
        pass
    except OSError as e:
        log(f"Failed to remove staged file {path.name}: {e}", "WARNING")


def _copy_stream(stream, f, length: Optional[int]) -> int:
    written = 0
    while length is None or written < length:
        size = COPY_CHUNK_SIZE if length is None else min(COPY_CHUNK_SIZE, length - written)
        chunk = stream.read(size)
        if not chunk:
            break
        f.write(chunk)
        written += len(chunk)
    return written


def stage_write(config, relative_path, content, length: Optional[int] = None) -> Path:
    """Write ``content`` in full to a fresh staged file for ``relative_path``.

    ``content`` is bytes or a binary stream. For a stream, ``length`` bytes
    are expected; receiving fewer raises IncompleteWrite. On any failure the
    partial staged file is removed and the error propagates; the hosted
    directory is never touched.

    Returns the staged file, to be passed to ``commit_write`` or
    ``discard_write``.
    """
    mirror = staged_path(config, relative_path)
    mirror.parent.mkdir(parents=True, exist_ok=True)

    fd, name = tempfile.mkstemp(dir=mirror.parent, prefix=mirror.name + ".", suffix=STAGED_SUFFIX)
    staged = Path(name)
    try:
        with os.fdopen(fd, "wb") as f:
            if isinstance(content, (bytes, bytearray, memoryview)):
                f.write(content)
            else:
                written = _copy_stream(content, f, length)
                if length is not None and written < length:
                    raise IncompleteWrite(length, written)
    except BaseException:
        _remove_quietly(staged)
        raise
    return staged


def commit_write(config, relative_path, staged) -> None:
    """Move the ``staged`` file into the hosted directory at ``relative_path``.

    Uses an atomic rename when staging and hosted directory share a
    filesystem, copy-then-delete otherwise.
    """
    source = _check_staged(config, staged)
    destination = config.hosted_directory.path.joinpath(*_relative(relative_path).parts)

    if not source.is_file():
        raise FileNotFoundError(f"Nothing staged for {relative_path}")
    if destination.is_dir():
        raise IsADirectoryError(f"{relative_path} is a directory")

    destination.parent.mkdir(parents=True, exist_ok=True)
    try:
        os.replace(source, destination)
    except OSError as e:
        if e.errno != errno.EXDEV:
            raise
        # Different filesystem; shutil.move falls back to copying
        shutil.move(str(source), str(destination))


def discard_write(config, staged) -> None:
    """Best-effort removal of a staged file that will not be committed"""
    _remove_quietly(_check_staged(config, staged))
