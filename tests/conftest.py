"""Shared fixtures for tsdual tests."""

import json
from pathlib import Path
from typing import Dict, Union

import pytest


@pytest.fixture
def make_package(tmp_path):
    """Write a small package tree under tmp_path and return its root."""

    def _make(files: Dict[str, Union[str, dict]]) -> Path:
        for relpath, content in files.items():
            path = tmp_path / relpath
            path.parent.mkdir(parents=True, exist_ok=True)
            if isinstance(content, dict):
                content = json.dumps(content, indent=2) + "\n"
            path.write_text(content)
        return tmp_path.resolve()

    return _make
