"""
Request URL to filesystem path translation.

Every path handed out by this module is confined to the hosted directory:
- ``..`` segments may not climb above the hosted root
- with symlink following disabled, no component between the root and the
  target may be a symlink, wherever it points
- the staging area is never reachable, even when it lives under the root

The symlink walk happens before the file is opened by the caller, so a link
swapped in between the two is not caught.
"""
from __future__ import annotations

from pathlib import Path, PurePosixPath
from typing import List
from urllib.parse import unquote, urlsplit

from .errors import NotFound, Outside, SymlinkDenied


def url_path(url: str) -> str:
    """Return the decoded path part of ``url`` relative to the site root.

    Segments keep their order and non-ASCII content; the result never starts
    with a separator.

    >>> url_path("http://127.0.0.1:8000/capitalism/%D1%80%D1%83%D1%81%D1%81%D0%BA%D0%B8%D0%B9/")
    'capitalism/русский/'
    """
    if url.startswith("/"):
        # Request target; a leading "//" is not a network location here
        path = url.split("?", 1)[0].split("#", 1)[0]
    else:
        path = urlsplit(url).path
    segments = path.split("/")
    decoded = [unquote(seg, errors="surrogateescape") for seg in segments]
    return "/".join(decoded).lstrip("/")


def is_within(child: Path, parent: Path) -> bool:
    try:
        child.relative_to(parent)
        return True
    except ValueError:
        return False


def normalize_parts(relative: str) -> List[str]:
    """Collapse ``.`` and ``..`` lexically; raise Outside if the root is left"""
    if PurePosixPath(relative).is_absolute():
        raise Outside(relative)
    parts: List[str] = []
    for part in relative.split("/"):
        if part in ("", "."):
            continue
        if part == "..":
            if not parts:
                raise Outside(relative)
            parts.pop()
        else:
            parts.append(part)
    return parts


def _check_symlinks(root: Path, relative: str) -> None:
    # Components are taken in request order, so ``a/link/..`` still visits
    # ``link``; up to the first symlink every directory seen is real, which
    # makes the lexical ``..`` step exact.
    current = root
    for part in relative.split("/"):
        if part in ("", "."):
            continue
        if part == "..":
            current = current.parent
            continue
        current = current / part
        if current.is_symlink():
            raise SymlinkDenied(relative)


def _in_staging(config, path: Path) -> bool:
    staging = config.temp_directory
    return staging is not None and is_within(path, staging.path)


def contains_staging(config, path: Path) -> bool:
    """True if removing ``path`` would take the staging area with it"""
    staging = config.temp_directory
    return staging is not None and is_within(staging.path, path)


def resolve_path(config, url: str) -> Path:
    """Map ``url`` to a canonical path inside the hosted directory.

    Raises, in order of checking: NotFound when the path does not exist,
    Outside when ``..`` leaves the root and SymlinkDenied when a symlink is
    on the way (both only with following disabled), Outside when the
    canonical path is not under the root.
    """
    root = config.hosted_directory.path
    relative = url_path(url)

    try:
        real = (root / relative).resolve(strict=True)
    except (OSError, RuntimeError, ValueError):
        raise NotFound(relative) from None

    # Without symlinks on the way the lexical walk matches the filesystem.
    # When they are followed, ".." may legitimately step back out of a link
    # target, so only the canonical check below decides.
    if not config.follow_symlinks:
        normalize_parts(relative)
        _check_symlinks(root, relative)

    if not is_within(real, root):
        raise Outside(relative)

    if _in_staging(config, real):
        raise NotFound(relative)

    return real


def resolve_write_target(config, url: str) -> PurePosixPath:
    """Validate ``url`` as a write destination, returning it relative to the root.

    The destination itself need not exist. Its existing ancestors go through
    the same symlink and containment checks as ``resolve_path``.
    """
    root = config.hosted_directory.path
    relative = url_path(url)
    parts = normalize_parts(relative)

    current = root
    for part in parts:
        candidate = current / part
        if not candidate.exists() and not candidate.is_symlink():
            break
        if candidate.is_symlink() and not config.follow_symlinks:
            raise SymlinkDenied(relative)
        current = candidate

    try:
        real = current.resolve(strict=True)
    except (OSError, RuntimeError, ValueError):
        raise NotFound(relative) from None
    if not is_within(real, root):
        raise Outside(relative)

    target = PurePosixPath(*parts) if parts else PurePosixPath()
    if _in_staging(config, root.joinpath(*parts)) or _in_staging(config, real):
        raise NotFound(relative)
    return target
