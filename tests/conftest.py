"""Shared test fixtures."""

from __future__ import annotations

import stat
import sys
from dataclasses import replace
from pathlib import Path

import pytest

from brain_cli.config import CONFIG_BY_CLI_SLUG, BrainCliConfig, BrainCliSettings
from brain_cli.supervisor import BrainCliHandle

OPUS_SLUG = "claude@anthropic/claude/opus/v4.5"

_FAKE_BRAIN_SCRIPT = r'''
import json
import os
import signal
import sys
import time

argv = sys.argv[1:]
argv_log = os.environ.get("FAKE_BRAIN_ARGV_LOG")
if argv_log:
    with open(argv_log, "a", encoding="utf-8") as handle:
        handle.write(json.dumps(argv) + "\n")

session = os.environ.get("FAKE_BRAIN_SESSION", "sess-fake-1")
if "--resume" in argv:
    session = argv[argv.index("--resume") + 1]

if "-p" not in argv:

    def on_winch(signum, frame):
        size = os.get_terminal_size(0)
        os.write(1, f"winch {size.columns}x{size.lines}\n".encode())

    signal.signal(signal.SIGWINCH, on_winch)
    signal.signal(signal.SIGINT, signal.default_int_handler)
    print("interactive ready", flush=True)
    for line in sys.stdin:
        sys.stdout.write("echo:" + line)
        sys.stdout.flush()
    raise SystemExit(0)


def emit(payload):
    sys.stdout.write(json.dumps(payload) + "\n")
    sys.stdout.flush()


sys.stdout.write("warning: diagnostic noise on stdout\n")
emit({"type": "system", "subtype": "init", "session_id": session})
compact_on = int(os.environ.get("FAKE_BRAIN_COMPACT_ON_TURN", "0"))
first_turn_delay = float(os.environ.get("FAKE_BRAIN_FIRST_TURN_DELAY", "0"))
turn = 0
for raw in sys.stdin:
    if not raw.strip():
        continue
    message = json.loads(raw)
    turn += 1
    prompt = message["message"]["content"]
    text = "echo: " + prompt
    if turn == 1 and first_turn_delay:
        time.sleep(first_turn_delay)
    if turn == compact_on:
        emit({"type": "system", "subtype": "compact_boundary", "session_id": session})
    emit(
        {
            "type": "assistant",
            "session_id": session,
            "message": {
                "content": [{"type": "text", "text": text}],
                "usage": {"input_tokens": 10, "output_tokens": 5},
            },
        },
    )
    emit(
        {
            "type": "result",
            "result": text,
            "session_id": session,
            "cost_usd": 0.001,
            "duration_ms": 42,
            "received_session_id": message.get("session_id"),
        },
    )
'''


def write_fake_brain(bin_dir: Path, name: str = "claude") -> Path:
    """Write an executable that speaks the stream-json protocol."""

    bin_dir.mkdir(parents=True, exist_ok=True)
    implementation = bin_dir / f"{name}_impl.py"
    implementation.write_text(_FAKE_BRAIN_SCRIPT.strip() + "\n", "utf-8")
    launcher = bin_dir / name
    launcher.write_text(
        f'#!/usr/bin/env sh\nexec "{sys.executable}" "{implementation}" "$@"\n',
        "utf-8",
    )
    launcher.chmod(launcher.stat().st_mode | stat.S_IXUSR)
    return launcher


@pytest.fixture()
def argv_log(tmp_path: Path, monkeypatch) -> Path:
    path = tmp_path / "argv.jsonl"
    monkeypatch.setenv("FAKE_BRAIN_ARGV_LOG", str(path))
    return path


@pytest.fixture()
def fake_brain(tmp_path: Path) -> Path:
    return write_fake_brain(tmp_path / "bin")


@pytest.fixture()
def fake_config(fake_brain: Path) -> BrainCliConfig:
    return replace(CONFIG_BY_CLI_SLUG[OPUS_SLUG], binary=str(fake_brain))


@pytest.fixture()
async def handle(fake_config: BrainCliConfig, tmp_path: Path):
    brain = BrainCliHandle(
        fake_config,
        cwd=tmp_path,
        settings=BrainCliSettings(kill_grace_seconds=5.0),
    )
    yield brain
    await brain.executor.shutdown()
