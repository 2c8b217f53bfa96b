import os
import tempfile

# config reads the environment at import time
_BASE_DIR = tempfile.mkdtemp(prefix="banner-api-tests-")
os.environ["STORAGE_PATH"] = os.path.join(_BASE_DIR, "storage")
os.environ["TEMP_DIR"] = os.path.join(_BASE_DIR, "tmp")
os.environ["LOG_DIR"] = os.path.join(_BASE_DIR, "logs")
os.environ["BASE_URL"] = "http://testserver/storage"
os.environ["SENTRY_DSN"] = ""
os.environ["PUBLISHER"] = "local"

import pytest

import config


@pytest.fixture(autouse=True)
def isolated_dirs(tmp_path, monkeypatch):
    storage = tmp_path / "storage"
    scratch = tmp_path / "tmp"
    storage.mkdir()
    scratch.mkdir()
    monkeypatch.setattr(config, "STORAGE_PATH", str(storage))
    monkeypatch.setattr(config, "TEMP_DIR", str(scratch))
    return {"storage": storage, "scratch": scratch}
