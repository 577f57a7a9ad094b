"""Tests for the built-in subprocess emulation core."""

import io
import logging
import sys
import textwrap
from pathlib import Path

import pytest

from ht_common.errors import BootError
from ht_runner.core.interface import CoreStatus, us_to_cycles
from ht_runner.core.subprocess_core import SubprocessCore
from ht_runner.engine.stop_token import StopToken
from ht_runner.models.config import CpuMode, RunConfig
from ht_runner.services.output_sink import OutputSink


pytestmark = [pytest.mark.unit, pytest.mark.unit_runner]

QUANTUM = us_to_cycles(100_000)


@pytest.fixture
def boot_file(tmp_path: Path) -> Path:
    path = tmp_path / "test.prx"
    path.write_bytes(b"\x00")
    return path


def _emulator(tmp_path: Path, body: str) -> list[str]:
    script = tmp_path / "fake_emulator.py"
    script.write_text(textwrap.dedent(body), encoding="utf-8")
    return [sys.executable, str(script)]


def _run_to_completion(core: SubprocessCore, max_quanta: int = 100) -> CoreStatus:
    token = StopToken()
    status = CoreStatus.RUNNING
    for _ in range(max_quanta):
        status = core.advance(QUANTUM, token)
        if status is CoreStatus.COMPLETED:
            break
    return status


def test_build_command_flags(boot_file: Path, tmp_path: Path) -> None:
    core = SubprocessCore(command=["emu", "--headless"])
    iso = tmp_path / "umd.cso"
    config = RunConfig(boot_target=boot_file, cpu_mode=CpuMode.INTERPRETER, mount_image=iso)

    assert core.build_command(config) == [
        "emu",
        "--headless",
        "--interpreter",
        "--mount",
        str(iso),
        str(boot_file),
    ]


def test_command_from_environment(monkeypatch: pytest.MonkeyPatch, boot_file: Path) -> None:
    monkeypatch.setenv("HT_CORE_COMMAND", "my-emu --fast")
    cmd = SubprocessCore().build_command(RunConfig(boot_target=boot_file))
    assert cmd == ["my-emu", "--fast", "--jit", str(boot_file)]


def test_missing_command_is_boot_error(monkeypatch: pytest.MonkeyPatch, boot_file: Path) -> None:
    monkeypatch.delenv("HT_CORE_COMMAND", raising=False)
    with pytest.raises(BootError, match="HT_CORE_COMMAND"):
        SubprocessCore().boot(RunConfig(boot_target=boot_file), OutputSink(capture=True))


def test_missing_boot_target_is_boot_error(tmp_path: Path) -> None:
    core = SubprocessCore(command=["emu"])
    with pytest.raises(BootError, match="File not found"):
        core.boot(RunConfig(boot_target=tmp_path / "nope.prx"), OutputSink(capture=True))


def test_missing_mount_image_is_boot_error(boot_file: Path, tmp_path: Path) -> None:
    core = SubprocessCore(command=["emu"])
    config = RunConfig(boot_target=boot_file, mount_image=tmp_path / "none.iso")
    with pytest.raises(BootError, match="Mount image"):
        core.boot(config, OutputSink(capture=True))


def test_unlaunchable_command_is_boot_error(boot_file: Path, tmp_path: Path) -> None:
    core = SubprocessCore(command=[str(tmp_path / "no-such-emulator")])
    with pytest.raises(BootError, match="Cannot launch emulator"):
        core.boot(RunConfig(boot_target=boot_file), OutputSink(capture=True))


def test_stdout_captured_and_stderr_logged(
    boot_file: Path, tmp_path: Path, caplog: pytest.LogCaptureFixture
) -> None:
    command = _emulator(
        tmp_path,
        """
        import sys
        print("mode", sys.argv[1])
        print("target", sys.argv[-1].endswith("test.prx"))
        print("E bad opcode", file=sys.stderr)
        """,
    )
    core = SubprocessCore(command=command)
    sink = OutputSink(capture=True, passthrough=io.StringIO())

    with caplog.at_level(logging.DEBUG, logger="ht_runner.emulator"):
        core.boot(RunConfig(boot_target=boot_file), sink)
        status = _run_to_completion(core)
        core.shutdown()

    assert status is CoreStatus.COMPLETED
    assert sink.captured == "mode --jit\ntarget True\n"
    errors = [r for r in caplog.records if r.name == "ht_runner.emulator"]
    assert errors and errors[0].levelno == logging.ERROR
    assert errors[0].getMessage() == "bad opcode"


@pytest.mark.slow
def test_stop_token_ends_quantum_early_and_shutdown_terminates(
    boot_file: Path, tmp_path: Path
) -> None:
    command = _emulator(
        tmp_path,
        """
        import time
        while True:
            time.sleep(0.05)
        """,
    )
    core = SubprocessCore(command=command)
    core.boot(RunConfig(boot_target=boot_file), OutputSink(capture=True))
    token = StopToken(on_stop=core.request_stop)

    assert core.advance(QUANTUM, token) is CoreStatus.RUNNING
    token.request_stop("Test timeout")
    assert core.advance(QUANTUM * 100, token) in (CoreStatus.RUNNING, CoreStatus.COMPLETED)

    core.shutdown()
    core.shutdown()


def test_undecodable_stdout_keeps_draining(boot_file: Path, tmp_path: Path) -> None:
    command = _emulator(
        tmp_path,
        """
        import sys
        out = sys.stdout.buffer
        out.write(b"before\\n\\xff\\xfe\\n")
        for _ in range(20000):
            out.write(b"after\\n")
        out.flush()
        """,
    )
    core = SubprocessCore(command=command)
    sink = OutputSink(capture=True, passthrough=io.StringIO())

    core.boot(RunConfig(boot_target=boot_file), sink)
    status = _run_to_completion(core, max_quanta=300)
    core.shutdown()

    assert status is CoreStatus.COMPLETED
    lines = sink.captured.splitlines()
    assert lines[0] == "before"
    assert lines[1] == "\ufffd\ufffd"
    assert lines.count("after") == 20000


@pytest.mark.parametrize(
    "value, expected",
    [(None, 5.0), ("0.5", 0.5), ("soon", 5.0), ("-1", 5.0)],
)
def test_shutdown_grace_from_environment(
    monkeypatch: pytest.MonkeyPatch, value, expected: float
) -> None:
    if value is None:
        monkeypatch.delenv("HT_CORE_SHUTDOWN_GRACE", raising=False)
    else:
        monkeypatch.setenv("HT_CORE_SHUTDOWN_GRACE", value)

    assert SubprocessCore(command=["emu"]).shutdown_grace() == expected
