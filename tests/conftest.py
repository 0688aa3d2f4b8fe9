import os
import tempfile

import pytest

# Keep server logs out of the working tree; must run before server imports.
os.environ.setdefault("LOG_DIR", tempfile.mkdtemp(prefix="popbar-logs-"))


@pytest.fixture(autouse=True)
def popbar_home(tmp_path, monkeypatch):
    home = tmp_path / "popbar-home"
    monkeypatch.setenv("POPBAR_HOME", str(home))
    return home
