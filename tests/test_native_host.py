from __future__ import annotations

import io
import json
import os
import struct
import subprocess
import sys
from pathlib import Path

import pytest

from post2mpv_bridge import native_host
from post2mpv_bridge.framing import FrameChannel, FrameWriteError
from post2mpv_bridge.messages import InboundMessage, OutboundMessage
from post2mpv_bridge.translator import RequestTranslator

REPO_ROOT = Path(__file__).resolve().parent.parent


def _frame(obj: object) -> bytes:
    raw = obj if isinstance(obj, bytes) else json.dumps(obj).encode("utf-8")
    return struct.pack("<I", len(raw)) + raw


def _read_frames(raw: bytes) -> list[dict]:
    frames: list[dict] = []
    pos = 0
    while pos < len(raw):
        (length,) = struct.unpack("<I", raw[pos : pos + 4])
        frames.append(json.loads(raw[pos + 4 : pos + 4 + length].decode("utf-8")))
        pos += 4 + length
    return frames


class _EchoTranslator:
    def __init__(self) -> None:
        self.seen: list[InboundMessage] = []

    def translate(self, msg: InboundMessage) -> OutboundMessage:
        self.seen.append(msg)
        return OutboundMessage.ok(200, body=msg.url)


def _run(data: bytes) -> tuple[list[dict], _EchoTranslator]:
    out = io.BytesIO()
    translator = _EchoTranslator()
    native_host.run(FrameChannel(io.BytesIO(data), out), translator)  # type: ignore[arg-type]
    return _read_frames(out.getvalue()), translator


# ═══════════════════════════════════════════════════════════════════════════════
# LOOP
# ═══════════════════════════════════════════════════════════════════════════════


def test_empty_input_stops_without_output() -> None:
    frames, translator = _run(b"")
    assert frames == []
    assert translator.seen == []


def test_responses_pair_with_requests_in_order() -> None:
    data = b"".join(
        [
            _frame({"url": "first"}),
            _frame(b"{broken"),
            _frame({"type": "play"}),
            _frame({"url": "second", "port": "x"}),
            _frame({"url": "third"}),
        ]
    )
    frames, translator = _run(data)
    assert len(frames) == 5
    assert frames[0] == {"status": "ok", "code": 200, "body": "first"}
    assert frames[1]["status"] == "error"
    assert frames[1]["message"].startswith("Failed to read message:")
    assert frames[2] == {"status": "error", "message": "'url' required"}
    assert frames[3]["status"] == "error"
    assert frames[3]["message"].startswith("Failed to read message:")
    assert frames[4] == {"status": "ok", "code": 200, "body": "third"}
    assert [m.url for m in translator.seen] == ["first", "third"]


def test_empty_url_never_reaches_translator() -> None:
    frames, translator = _run(_frame({"url": "", "host": "http://127.0.0.1", "token": "t"}))
    assert translator.seen == []
    assert frames == [{"status": "error", "message": "'url' required"}]


def test_truncated_trailing_frame_reports_then_stops() -> None:
    frames, _ = _run(_frame({"url": "a"}) + struct.pack("<I", 50) + b'{"url"')
    assert frames[0]["status"] == "ok"
    assert frames[1]["status"] == "error"
    assert "truncated" in frames[1]["message"]
    assert len(frames) == 2


def test_write_failure_propagates() -> None:
    out = io.BytesIO()
    out.close()
    channel = FrameChannel(io.BytesIO(_frame({"url": "a"})), out)
    with pytest.raises(FrameWriteError):
        native_host.run(channel, _EchoTranslator())  # type: ignore[arg-type]


# ═══════════════════════════════════════════════════════════════════════════════
# CLI
# ═══════════════════════════════════════════════════════════════════════════════


def test_help_prints_usage(capsys: pytest.CaptureFixture[str]) -> None:
    native_host.main(["post2mpv-bridge", "--help"])
    assert capsys.readouterr().out == "usage: post2mpv-bridge [--manifest]\n"


def test_manifest_prints_plain_json(capsys: pytest.CaptureFixture[str], tmp_path: Path) -> None:
    exe = tmp_path / "bin" / "post2mpv-bridge"
    native_host.main([str(exe), "--manifest"])
    data = json.loads(capsys.readouterr().out)
    assert data == {
        "name": "post2mpv",
        "description": "post2mpv native bridge (post2mpv-bridge)",
        "path": str(exe.resolve()),
        "type": "stdio",
        "allowed_extensions": ["post2mpv@netnom.uk"],
    }
    assert os.path.isabs(data["path"])


def test_unknown_argument_runs_loop(monkeypatch: pytest.MonkeyPatch) -> None:
    called: list[bool] = []
    monkeypatch.setattr(native_host, "run", lambda channel, translator: called.append(True))
    native_host.main(["post2mpv-bridge", "--verbose"])
    native_host.main(["post2mpv-bridge", "--manifest", "extra"])
    assert called == [True, True]


def test_write_failure_exits_nonzero(monkeypatch: pytest.MonkeyPatch) -> None:
    def _boom(channel: object, translator: object) -> None:
        raise FrameWriteError("write failed: [Errno 32] Broken pipe")

    monkeypatch.setattr(native_host, "run", _boom)
    with pytest.raises(SystemExit) as exc:
        native_host.main(["post2mpv-bridge"])
    assert exc.value.code == 1


# ═══════════════════════════════════════════════════════════════════════════════
# END TO END
# ═══════════════════════════════════════════════════════════════════════════════


def test_process_answers_each_frame_and_exits_on_eof() -> None:
    env = os.environ.copy()
    env["PYTHONPATH"] = str(REPO_ROOT) + os.pathsep + env.get("PYTHONPATH", "")
    data = _frame({"type": "play"}) + _frame(b"\x00not-json") + _frame(["a", "list"])
    proc = subprocess.run(
        [sys.executable, "-m", "post2mpv_bridge.native_host"],
        input=data,
        capture_output=True,
        env=env,
        timeout=20,
    )
    assert proc.returncode == 0, proc.stderr.decode(errors="replace")
    frames = _read_frames(proc.stdout)
    assert frames[0] == {"status": "error", "message": "'url' required"}
    assert [f["status"] for f in frames] == ["error", "error", "error"]
    assert frames[2]["message"].startswith("Failed to read message:")


def test_unsendable_requests_are_answered_and_loop_continues() -> None:
    data = b"".join(
        [
            _frame({"url": "u", "token": "a\nb"}),
            _frame({"url": ""}),
            _frame({"url": "u", "host": "http://" + "a" * 70}),
            _frame({"url": "u", "host": "http://a b"}),
        ]
    )
    out = io.BytesIO()
    native_host.run(FrameChannel(io.BytesIO(data), out), RequestTranslator())
    frames = _read_frames(out.getvalue())
    assert len(frames) == 4
    assert frames[1] == {"status": "error", "message": "'url' required"}
    for frame in (frames[0], frames[2], frames[3]):
        assert frame["status"] == "error"
        assert frame["message"].startswith("Failed to create request:")
        assert "code" not in frame


def test_manifest_via_module_points_at_console_script(tmp_path: Path) -> None:
    if os.name == "nt":
        return
    bin_dir = tmp_path / "bin"
    bin_dir.mkdir()
    script = bin_dir / "post2mpv-bridge"
    script.write_text("#!/bin/sh\n", encoding="utf-8")
    script.chmod(0o755)

    env = os.environ.copy()
    env["PYTHONPATH"] = str(REPO_ROOT) + os.pathsep + env.get("PYTHONPATH", "")
    env["PATH"] = str(bin_dir) + os.pathsep + env.get("PATH", "")
    proc = subprocess.run(
        [sys.executable, "-m", "post2mpv_bridge", "--manifest"],
        capture_output=True,
        env=env,
        timeout=20,
    )
    assert proc.returncode == 0, proc.stderr.decode(errors="replace")
    data = json.loads(proc.stdout)
    assert data["path"] == str(script.resolve())
    assert not data["path"].endswith(".py")
