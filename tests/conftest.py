from __future__ import annotations

import sys
from pathlib import Path


def _add_src_to_path() -> None:
    """
    Ensure `src/` is on sys.path so tests can import `nanoflow`
    without requiring an editable install.
    """
    repo_root = Path(__file__).resolve().parents[1]
    src_root = str(repo_root / "src")
    if src_root not in sys.path:
        sys.path.insert(0, src_root)


# Done at import time as well, since tests/unit/conftest.py imports nanoflow
_add_src_to_path()


def pytest_configure() -> None:
    _add_src_to_path()
