"""Path confinement helpers shared by the file tools."""

from pathlib import Path


def resolve_inside(root: Path, relative: str) -> Path | None:
    """
    Resolve ``relative`` against ``root``.

    Returns None when the result escapes ``root`` (``..`` segments, absolute
    paths, symlinks pointing outside).
    """
    base = root.resolve()
    candidate = (base / relative).resolve()
    if candidate != base and base not in candidate.parents:
        return None
    return candidate


def display_path(root: Path, path: Path) -> str:
    """Forward-slash path of ``path`` relative to ``root``."""
    return path.resolve().relative_to(root.resolve()).as_posix() or "."
