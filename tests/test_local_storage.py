import os
from datetime import datetime, timedelta

import pytest

import config
from errors import PublishError, ValidationError
from services.local_storage import cleanup_old_files, file_exists, get_file_path, store_file


def stored_name(url):
    return url.rsplit("/", 1)[1]


@pytest.fixture
def rendered(tmp_path):
    path = tmp_path / "output-job.mp4"
    path.write_bytes(b"rendered video")
    return str(path)


def test_store_file_copies_and_returns_public_url(rendered):
    url = store_file(rendered)

    assert url.startswith("http://testserver/storage/")
    assert url.endswith(".mp4")
    stored = os.path.join(config.STORAGE_PATH, stored_name(url))
    with open(stored, "rb") as f:
        assert f.read() == b"rendered video"
    with open(f"{stored}.meta", encoding="utf-8") as f:
        assert datetime.fromisoformat(f.read())
    assert os.path.exists(rendered)


def test_store_missing_source_raises_publish_error(tmp_path):
    with pytest.raises(PublishError) as exc_info:
        store_file(str(tmp_path / "missing.mp4"))

    assert exc_info.value.error_code == "source_file_not_found_for_storage"


@pytest.mark.parametrize("filename", ["../secret", "/etc/passwd", "a/b.mp4", ""])
def test_invalid_filenames(filename):
    with pytest.raises(ValidationError):
        get_file_path(filename)
    assert file_exists(filename) is False


def test_cleanup_removes_only_expired_files(rendered, monkeypatch):
    monkeypatch.setattr(config, "MAX_FILE_AGE_HOURS", 1)
    old_name = stored_name(store_file(rendered))
    fresh_name = stored_name(store_file(rendered))
    with open(get_file_path(old_name) + ".meta", "w", encoding="utf-8") as f:
        f.write((datetime.now() - timedelta(hours=2)).isoformat())

    removed, freed = cleanup_old_files()

    assert removed == 1
    assert freed == len(b"rendered video")
    assert not file_exists(old_name)
    assert not os.path.exists(get_file_path(old_name) + ".meta")
    assert file_exists(fresh_name)


def test_cleanup_falls_back_to_mtime(monkeypatch):
    monkeypatch.setattr(config, "MAX_FILE_AGE_HOURS", 1)
    path = get_file_path("legacy.mp4")
    with open(path, "wb") as f:
        f.write(b"x")
    two_hours_ago = (datetime.now() - timedelta(hours=2)).timestamp()
    os.utime(path, (two_hours_ago, two_hours_ago))

    assert cleanup_old_files() == (1, 1)


def test_cleanup_disabled(rendered, monkeypatch):
    monkeypatch.setattr(config, "MAX_FILE_AGE_HOURS", 0)
    kept_name = stored_name(store_file(rendered))

    assert cleanup_old_files() == (0, 0)
    assert file_exists(kept_name)
