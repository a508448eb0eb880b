from __future__ import annotations

import os
import sys

import pytest


def _ensure_project_root_on_path() -> None:
    # When running via the venv's pytest entrypoint, the CWD is not guaranteed to
    # be on sys.path. Ensure the repository root (containing `screengraph/`) is importable.
    project_root = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))
    if project_root not in sys.path:
        sys.path.insert(0, project_root)


_ensure_project_root_on_path()


@pytest.fixture(autouse=True)
def _isolated_settings(monkeypatch, tmp_path):
    """Keep a developer's SCREENGRAPH_* environment and .env out of the tests."""
    for key in list(os.environ):
        if key.startswith("SCREENGRAPH_"):
            monkeypatch.delenv(key, raising=False)
    monkeypatch.chdir(tmp_path)
