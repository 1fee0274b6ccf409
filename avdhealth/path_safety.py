"""
Design (path_safety.py)
- Purpose: Block path traversal before a partially external path (resource-derived file
           name, user-picked file) is handed to a file opener or process launcher.
- Inputs: Target path and the allowed base directory.
- Outputs: The canonical (symlink-free, normalized) target path.
- Side effects: Touches the filesystem to resolve both paths (they must exist).
- Thread-safety: Stateless.
"""

from pathlib import Path
from typing import Union

from .errors import TraversalBlockedError

PathLike = Union[str, Path]


def validate_path_in_dir(path: PathLike, allowed_base: PathLike) -> Path:
    """
    Purpose: Resolve both paths and require that `path` lies inside `allowed_base`.
    Outputs: Canonical path.
    Raises: TraversalBlockedError when either path cannot be resolved or containment fails.
    """
    path = Path(path)
    allowed_base = Path(allowed_base)
    try:
        canonical_path = path.resolve(strict=True)
    except (OSError, RuntimeError) as exc:
        raise TraversalBlockedError(f"Cannot resolve path '{path}': {exc}") from exc
    try:
        canonical_base = allowed_base.resolve(strict=True)
    except (OSError, RuntimeError) as exc:
        raise TraversalBlockedError(f"Cannot resolve base path '{allowed_base}': {exc}") from exc

    # component-wise check; a plain string prefix would accept "base-evil/..."
    if canonical_path != canonical_base and canonical_base not in canonical_path.parents:
        raise TraversalBlockedError(
            f"Path traversal blocked: '{canonical_path}' is not within '{canonical_base}'"
        )
    return canonical_path
