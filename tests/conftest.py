import os

import pytest

from brenner_artifact.settings import reset_settings


@pytest.fixture(autouse=True)
def isolated_settings(monkeypatch, tmp_path):
    """Every test starts from default settings, unaffected by the caller's environment."""
    for name in list(os.environ):
        if name.startswith("BRENNER_"):
            monkeypatch.delenv(name)
    # Settings also read .env from the working directory.
    monkeypatch.chdir(tmp_path)
    reset_settings()
    yield
    reset_settings()
