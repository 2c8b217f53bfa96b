import importlib
import os
import socket
import tempfile
import time

import pytest

import config
from errors import ValidationError
from services.cleanup_service import CleanupService
from services.file_management import ScratchFile, cleanup_temp_files, format_size, validate_url


def _age(path, hours):
    then = time.time() - hours * 3600
    os.utime(path, (then, then))


def test_scratch_file_lives_in_temp_dir_and_is_released():
    with ScratchFile("input-", "job1") as scratch:
        assert scratch.path == os.path.join(config.TEMP_DIR, "input-job1.mp4")
        with open(scratch.path, "wb") as f:
            f.write(b"data")

    assert not os.path.exists(scratch.path)
    assert scratch.released


def test_scratch_file_release_without_file_and_twice():
    scratch = ScratchFile("output-", "job2")

    assert scratch.release() is True
    assert scratch.release() is True


def test_cleanup_temp_files_only_touches_old_scratch(isolated_dirs):
    scratch_dir = isolated_dirs["scratch"]
    old_input = scratch_dir / "input-old.mp4"
    new_output = scratch_dir / "output-new.mp4"
    unrelated = scratch_dir / "someone-elses.tmp"
    for path in (old_input, new_output, unrelated):
        path.write_bytes(b"12345")
    _age(old_input, 3)
    _age(unrelated, 3)

    assert cleanup_temp_files(max_age_hours=1) == (1, 5)
    assert not old_input.exists()
    assert new_output.exists()
    assert unrelated.exists()


def test_cleanup_temp_files_missing_directory(tmp_path):
    assert cleanup_temp_files(directory=str(tmp_path / "nope")) == (0, 0)


def test_cleanup_service_run_now(isolated_dirs, monkeypatch):
    monkeypatch.setattr(config, "MAX_FILE_AGE_HOURS", 1)
    orphan = isolated_dirs["scratch"] / "output-crashed.mp4"
    orphan.write_bytes(b"abc")
    _age(orphan, 2)
    expired = isolated_dirs["storage"] / "expired.mp4"
    expired.write_bytes(b"abcd")
    _age(expired, 2)

    service = CleanupService(interval_minutes=5, max_file_age_hours=1)
    result = service.run_now()

    assert result.files_removed == 2
    assert result.bytes_freed == 7
    assert result.categories == {"storage": 1, "scratch": 1}
    assert result.errors == []
    status = service.get_status()
    assert status["run_count"] == 1
    assert status["last_result"]["categories"] == {"storage": 1, "scratch": 1}
    assert status["active"] is False


def test_cleanup_service_start_and_stop():
    service = CleanupService(interval_minutes=60, max_file_age_hours=1)
    service.start()
    service.stop(timeout=5)

    assert service.thread is None


@pytest.mark.parametrize("url", [
    "file:///etc/passwd",
    "http://localhost/video.mp4",
    "http://10.0.0.5/video.mp4",
    "http://169.254.169.254/latest/meta-data",
    "",
])
def test_validate_url_rejects_unsafe_urls(url):
    with pytest.raises(ValidationError):
        validate_url(url)


@pytest.mark.parametrize("url, error_code", [
    ("ftp://cdn.example.com/video.mp4", "invalid_url_scheme"),
    ("http:///video.mp4", "invalid_url_no_hostname"),
    ("http://0.0.0.0/video.mp4", "disallowed_hostname"),
    ("http://user@cdn.example.com/video.mp4", "suspicious_characters_in_url"),
    ("http://[::1]/video.mp4", "private_ip_access"),
])
def test_validate_url_error_codes(url, error_code):
    with pytest.raises(ValidationError) as exc_info:
        validate_url(url)

    assert exc_info.value.error_code == error_code


def test_validate_url_accepts_public_hosts(monkeypatch):
    monkeypatch.setattr(socket, "getaddrinfo", lambda host, port: [(None, None, None, "", ("93.184.216.34", 0))])

    assert validate_url("https://8.8.8.8/video.mp4") == "https://8.8.8.8/video.mp4"
    assert validate_url("https://cdn.example.com/video.mp4") == "https://cdn.example.com/video.mp4"


def test_validate_url_checks_resolved_addresses(monkeypatch):
    monkeypatch.setattr(socket, "getaddrinfo", lambda host, port: [(None, None, None, "", ("192.168.1.7", 0))])

    with pytest.raises(ValidationError) as exc_info:
        validate_url("https://internal.example.com/video.mp4")

    assert exc_info.value.error_code == "private_resolved_ip"
    assert exc_info.value.details["resolved_ip"] == "192.168.1.7"


def test_unresolvable_hosts_are_left_to_the_download(monkeypatch):
    def unresolvable(host, port):
        raise socket.gaierror("Name or service not known")

    monkeypatch.setattr(socket, "getaddrinfo", unresolvable)

    assert validate_url("https://nowhere.invalid/video.mp4") == "https://nowhere.invalid/video.mp4"


def test_format_size():
    assert format_size(512) == "512.00 B"
    assert format_size(2048) == "2.00 KB"


def test_scratch_dir_defaults_to_a_private_directory():
    saved = os.environ.pop("TEMP_DIR")
    try:
        importlib.reload(config)
        default_dir = config.TEMP_DIR
    finally:
        os.environ["TEMP_DIR"] = saved
        importlib.reload(config)

    assert default_dir == os.path.join(os.path.abspath(tempfile.gettempdir()), "banner-api")
    assert default_dir != os.path.abspath(tempfile.gettempdir())
