"""Global test configuration.

Keeps rollgate from picking up a developer's rollgate.json or ROLLGATE_*
environment while the suite runs.
"""

import os

import pytest


@pytest.fixture(autouse=True)
def isolated_rollgate_env(tmp_path, monkeypatch):
    for key in list(os.environ):
        if key.startswith("ROLLGATE_"):
            monkeypatch.delenv(key, raising=False)
    monkeypatch.chdir(tmp_path)
    yield
