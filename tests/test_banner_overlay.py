import subprocess

import pytest

from errors import RenderError
from services.banner_geometry import resolve_geometry
from services.banner_overlay import (
    build_banner_filter,
    escape_filtergraph,
    escape_option_value,
    render_banner,
)
from services.banner_types import BannerConfig, VideoMeta

META = VideoMeta(width=1080, height=1920, duration_seconds=30.0)
FONT = "/fonts/DejaVuSans-Bold.ttf"


def geometry_for(label="Sarah", tag="TIKTOK", **config):
    return resolve_geometry(BannerConfig(**config), META, label, tag, 30.0)


def fake_popen_factory(returncode=0, stderr="", write_output=True):
    commands = []

    class FakePopen:
        def __init__(self, cmd, **kwargs):
            commands.append(cmd)
            self.cmd = cmd
            self.returncode = returncode

        def communicate(self, timeout=None):
            if write_output:
                with open(self.cmd[-1], "wb") as f:
                    f.write(b"rendered")
            return "", stderr

        def kill(self):
            pass

    return FakePopen, commands


def test_escape_option_value():
    assert escape_option_value("a:b'c\\d") == "a\\:b\\'c\\\\d"


def test_escape_filtergraph():
    assert escape_filtergraph("x,y[z];'") == "x\\,y\\[z\\]\\;\\'"


def test_filter_contains_resolved_geometry():
    geometry = geometry_for()
    video_filter = build_banner_filter(geometry, FONT)

    assert video_filter.startswith("drawtext=fontfile=/fonts/DejaVuSans-Bold.ttf:")
    assert ":text=Ask for Sarah and mention you saw this on TIKTOK!:" in video_filter
    assert ":expansion=none:" in video_filter
    assert ":fontsize=43:" in video_filter
    assert ":fontcolor=#feb628:" in video_filter
    assert ":y=305" in video_filter
    assert f"x=w-mod(t*{geometry.scroll.speed_px_per_sec:.6f}\\,{geometry.scroll.cycle_px:.6f})" in video_filter
    assert "box=" not in video_filter


def test_filter_adds_box_only_with_background():
    video_filter = build_banner_filter(geometry_for(show_background=True), FONT)

    assert video_filter.endswith(":box=1:boxcolor=#1a325b:boxborderw=13")


def test_filter_escapes_request_text():
    video_filter = build_banner_filter(geometry_for(label="O'Brien", tag="A,B"), FONT)

    assert "text=Ask for O\\\\\\'Brien and mention you saw this on A\\,B!" in video_filter


def test_render_builds_ffmpeg_command(monkeypatch, tmp_path):
    fake_popen, commands = fake_popen_factory()
    monkeypatch.setattr(subprocess, "Popen", fake_popen)
    output = str(tmp_path / "output-job.mp4")

    assert render_banner("/tmp/input-job.mp4", output, geometry_for(), font_file=FONT) == output

    cmd = commands[0]
    assert cmd[:4] == ["ffmpeg", "-y", "-i", "/tmp/input-job.mp4"]
    assert cmd[4] == "-vf"
    assert cmd[6:14] == ["-c:v", "libx264", "-preset", "fast", "-crf", "23", "-c:a", "copy"]
    assert cmd[14] == "-threads"
    assert cmd[-1] == output


def test_render_failure_raises_render_error(monkeypatch, tmp_path):
    fake_popen, _ = fake_popen_factory(returncode=1, stderr="Cannot load font", write_output=False)
    monkeypatch.setattr(subprocess, "Popen", fake_popen)

    with pytest.raises(RenderError) as exc_info:
        render_banner("/tmp/input-job.mp4", str(tmp_path / "out.mp4"), geometry_for(), font_file=FONT)

    assert exc_info.value.details["return_code"] == 1
    assert "Cannot load font" in exc_info.value.details["ffmpeg_error"]


def test_render_without_output_raises_render_error(monkeypatch, tmp_path):
    fake_popen, _ = fake_popen_factory(write_output=False)
    monkeypatch.setattr(subprocess, "Popen", fake_popen)

    with pytest.raises(RenderError) as exc_info:
        render_banner("/tmp/input-job.mp4", str(tmp_path / "out.mp4"), geometry_for(), font_file=FONT)

    assert exc_info.value.error_code == "ffmpeg_output_file_missing"


def test_render_timeout_raises_render_error(monkeypatch, tmp_path):
    class SlowPopen:
        def __init__(self, cmd, **kwargs):
            self.cmd = cmd
            self.killed = False

        def communicate(self, timeout=None):
            raise subprocess.TimeoutExpired(self.cmd, timeout)

        def kill(self):
            self.killed = True

    monkeypatch.setattr(subprocess, "Popen", SlowPopen)

    with pytest.raises(RenderError) as exc_info:
        render_banner("/tmp/input-job.mp4", str(tmp_path / "out.mp4"), geometry_for(), font_file=FONT, timeout=5)

    assert exc_info.value.error_code == "ffmpeg_timeout"
