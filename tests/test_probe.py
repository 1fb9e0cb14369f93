import json

import pytest

from app.processing import probe as probe_module
from app.processing.errors import ProbeError
from app.processing.ffmpeg import CommandResult
from app.processing.probe import parse_probe_output, probe_media

FULL_HD = {
    "streams": [
        {"codec_type": "audio", "codec_name": "aac", "duration": "95.40"},
        {"codec_type": "video", "codec_name": "h264", "width": 1920, "height": 1080},
    ],
    "format": {"format_name": "mov,mp4,m4a,3gp,3g2,mj2", "duration": "95.418000"},
}


def test_parse_picks_first_video_stream():
    info = parse_probe_output(json.dumps(FULL_HD))
    assert info.width == 1920
    assert info.height == 1080
    assert info.codec == "h264"
    assert info.duration_seconds == pytest.approx(95.418)
    assert info.has_video


def test_parse_audio_only_reports_zero_dimensions():
    raw = json.dumps({
        "streams": [{"codec_type": "audio", "codec_name": "mp3"}],
        "format": {"duration": "184.2"},
    })
    info = parse_probe_output(raw)
    assert (info.width, info.height, info.codec) == (0, 0, "unknown")
    assert info.duration_seconds == pytest.approx(184.2)
    assert not info.has_video


def test_parse_falls_back_to_stream_duration():
    raw = json.dumps({
        "streams": [{"codec_type": "video", "codec_name": "vp9", "width": 640, "height": 360, "duration": "12.5"}],
        "format": {"format_name": "matroska,webm"},
    })
    assert parse_probe_output(raw).duration_seconds == pytest.approx(12.5)


def test_parse_missing_duration_is_zero():
    raw = json.dumps({"streams": [{"codec_type": "video", "width": 320, "height": 240}], "format": {}})
    assert parse_probe_output(raw).duration_seconds == 0.0


@pytest.mark.parametrize("raw", ["not json", json.dumps({}), json.dumps({"streams": [], "format": {}})])
def test_parse_rejects_unrecognized_output(raw):
    with pytest.raises(ProbeError):
        parse_probe_output(raw)


async def test_probe_missing_file(tmp_path):
    with pytest.raises(ProbeError, match="not found"):
        await probe_media(tmp_path / "nope.mp4")


async def test_probe_runs_ffprobe(tmp_path, monkeypatch):
    source = tmp_path / "clip.mp4"
    source.write_bytes(b"data")
    seen = {}

    async def fake_run(args, timeout=None):
        seen["args"] = args
        return CommandResult(0, json.dumps(FULL_HD), "")

    monkeypatch.setattr(probe_module, "run_command", fake_run)
    info = await probe_media(source)

    assert info.height == 1080
    assert seen["args"][-1] == str(source)
    assert "-show_streams" in seen["args"]


async def test_probe_nonzero_exit(tmp_path, monkeypatch):
    source = tmp_path / "broken.mp4"
    source.write_bytes(b"garbage")

    async def fake_run(args, timeout=None):
        return CommandResult(1, "", "broken.mp4: Invalid data found when processing input\n")

    monkeypatch.setattr(probe_module, "run_command", fake_run)
    with pytest.raises(ProbeError, match="Invalid data"):
        await probe_media(source)


async def test_probe_missing_binary(tmp_path, monkeypatch):
    source = tmp_path / "clip.mp4"
    source.write_bytes(b"data")

    async def fake_run(args, timeout=None):
        raise FileNotFoundError("ffprobe")

    monkeypatch.setattr(probe_module, "run_command", fake_run)
    with pytest.raises(ProbeError, match="not available"):
        await probe_media(source)


async def test_probe_binary_not_executable(tmp_path, monkeypatch):
    source = tmp_path / "clip.mp4"
    source.write_bytes(b"data")
    ffprobe = tmp_path / "ffprobe"
    ffprobe.write_text("not a program")
    ffprobe.chmod(0o644)
    monkeypatch.setattr(probe_module.settings, "FFPROBE_PATH", str(ffprobe))

    with pytest.raises(ProbeError, match="not available"):
        await probe_media(source)
