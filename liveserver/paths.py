"""
Request path to filesystem path mapping.

Every path handed out by :func:`resolve` lies inside the serve root after
``..`` segments and symlinks have been followed. Traversal attempts and
missing files raise the same :class:`PathRejected` so that callers can
answer both with a plain 404.
"""

import os
from pathlib import Path
from typing import Optional
from urllib.parse import unquote_plus

from .errors import PathRejected


def canonical_root(root) -> str:
    """Resolve ``root`` to an absolute real directory path.

    Raises ``NotADirectoryError`` or ``FileNotFoundError`` when the root is
    unusable.
    """
    real = Path(root).expanduser().resolve(strict=True)
    if not real.is_dir():
        raise NotADirectoryError(f"not a directory: {root}")
    return str(real)


def is_within(path: str, root: str) -> bool:
    if path == root:
        return True
    prefix = root if root.endswith(os.sep) else root + os.sep
    return path.startswith(prefix)


def resolve(root: str, request_path: Optional[str]) -> str:
    """Map ``request_path`` onto ``root`` (already canonical).

    Raises PathRejected with reason ``not-found`` when the path does not
    exist and ``forbidden`` when it escapes the root.
    """
    if not request_path or request_path == "/":
        return root

    # undecodable escapes map back to the same filename bytes
    decoded = unquote_plus(request_path, errors="surrogateescape")
    joined = os.path.join(root, decoded.lstrip("/"))
    try:
        real = str(Path(joined).resolve(strict=True))
    except (OSError, RuntimeError, ValueError):
        raise PathRejected(request_path, PathRejected.NOT_FOUND) from None

    if not is_within(real, root):
        raise PathRejected(request_path, PathRejected.FORBIDDEN)
    return real


def relative_to_root(path: str, root: str) -> str:
    """Root-relative path with forward slashes, as the browser sees it."""
    try:
        rel = os.path.relpath(path, root)
    except ValueError:
        return path
    return rel.replace(os.sep, "/")


def find_git_root(start=None) -> Optional[str]:
    current = Path(start or os.getcwd()).resolve()
    for candidate in (current, *current.parents):
        if (candidate / ".git").exists():
            return str(candidate)
    return None
