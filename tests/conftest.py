from __future__ import annotations

import os
import shutil
from pathlib import Path
from typing import Callable, List

import pytest

from fakes import ScriptedTransport, make_settings
from gptclient.client import GptClient


@pytest.fixture()
def sandbox(tmp_path: Path):
    root_cwd = Path.cwd()
    original_env = dict(os.environ)
    os.chdir(tmp_path)
    try:
        yield tmp_path
    finally:
        os.chdir(root_cwd)
        shutil.rmtree(tmp_path, ignore_errors=True)
        os.environ.clear()
        os.environ.update(original_env)


@pytest.fixture()
def sleeps() -> List[float]:
    return []


@pytest.fixture()
def make_client(sleeps: List[float]) -> Callable[..., GptClient]:
    def _make(transport: ScriptedTransport, **overrides) -> GptClient:
        return GptClient(make_settings(**overrides), transport=transport, sleep=sleeps.append)

    return _make
