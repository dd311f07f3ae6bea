from __future__ import annotations

import sys
from pathlib import Path


def _ensure_repo_root_on_path() -> None:
    """Put the directory that contains this package on ``sys.path``.

    Needed when the file is run directly (``python little_math_star/__main__.py``)
    instead of with ``python -m little_math_star``.
    """
    repo_root_str = str(Path(__file__).resolve().parent.parent)
    if repo_root_str not in sys.path:
        sys.path.insert(0, repo_root_str)


if __package__:
    from .app import run
else:
    _ensure_repo_root_on_path()
    from little_math_star.app import run


def main() -> int:
    """Entry point for running the game from the command line."""
    return run()


if __name__ == "__main__":
    raise SystemExit(main())
