from pathlib import Path
from typing import Iterable

from ..domain.errors import StorageError


def resolve_within(root: Path, relative: str) -> Path:
    """
    join a package-relative path onto root.

    raises:
        StorageError: if the result would lie outside root
    """
    base = Path(root).resolve()
    target = (base / relative).resolve()
    if target == base or base not in target.parents:
        raise StorageError(f"Refusing to touch path outside {base}: {relative}")
    return target


def prune_empty_dirs(paths: Iterable[Path], root: Path):
    """remove directories left empty by deleted files, stopping at root."""
    base = Path(root).resolve()
    for path in paths:
        parent = path.parent
        while parent != base and base in parent.parents:
            try:
                parent.rmdir()
            except OSError:
                # not empty (or already gone)
                break
            parent = parent.parent
