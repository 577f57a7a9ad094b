"""Emulation core that drives an external emulator process."""

from __future__ import annotations

import logging
import os
import queue
import shlex
import subprocess
import threading
import time
from typing import IO, List, Optional

from ht_common.config.env import parse_float_env
from ht_common.errors import BootError
from ht_common.logging import parse_emulator_log_line
from ht_runner.core.interface import CoreStatus, EmulationCore, cycles_to_seconds
from ht_runner.engine.stop_token import StopToken
from ht_runner.models.config import CpuMode, RunConfig
from ht_runner.services.output_sink import OutputSink


logger = logging.getLogger(__name__)
emulator_logger = logging.getLogger("ht_runner.emulator")

COMMAND_ENV = "HT_CORE_COMMAND"
SHUTDOWN_GRACE_ENV = "HT_CORE_SHUTDOWN_GRACE"
# Longest single wait inside advance(); also the stop-token checkpoint period.
POLL_INTERVAL_SECONDS = 0.01
SHUTDOWN_GRACE_SECONDS = 5.0

_STDOUT = "stdout"
_STDERR = "stderr"
_EOF = None


class SubprocessCore(EmulationCore):
    """
    Run the boot target under an emulator executable.

    The command comes from `HT_CORE_COMMAND` (or the constructor) and is
    invoked as ``<command> --jit|--interpreter [--mount IMAGE] TARGET``.
    Emulator stdout is the program's output; stderr carries its log,
    one "<letter> message" line at a time.
    """

    name = "subprocess"

    def __init__(self, command: Optional[List[str]] = None) -> None:
        self._command = command
        self._process: Optional[subprocess.Popen[str]] = None
        self._lines: "queue.Queue[tuple[str, Optional[str]]]" = queue.Queue()
        self._readers: List[threading.Thread] = []
        self._open_streams = 0
        self._output: Optional[OutputSink] = None

    def _resolve_command(self) -> List[str]:
        if self._command is not None:
            return list(self._command)
        return shlex.split(os.environ.get(COMMAND_ENV, ""))

    def build_command(self, config: RunConfig) -> List[str]:
        command = self._resolve_command()
        if not command:
            raise BootError(
                f"No emulator command configured; set {COMMAND_ENV}",
                context={"core": self.name},
            )
        command.append("--interpreter" if config.cpu_mode is CpuMode.INTERPRETER else "--jit")
        if config.mount_image is not None:
            command.extend(["--mount", str(config.mount_image)])
        command.append(str(config.boot_target))
        return command

    def boot(self, config: RunConfig, output: OutputSink) -> None:
        if not config.boot_target.is_file():
            raise BootError(
                f"File not found: {config.boot_target}",
                context={"boot_target": config.boot_target},
            )
        if config.mount_image is not None and not config.mount_image.is_file():
            raise BootError(
                f"Mount image not found: {config.mount_image}",
                context={"mount_image": config.mount_image},
            )
        cmd = self.build_command(config)
        logger.info("Running command: %s", " ".join(cmd))
        try:
            self._process = subprocess.Popen(
                cmd,
                stdout=subprocess.PIPE,
                stderr=subprocess.PIPE,
                stdin=subprocess.DEVNULL,
                text=True,
                encoding="utf-8",
                errors="replace",
                bufsize=1,
            )
        except OSError as exc:
            raise BootError(
                f"Cannot launch emulator: {exc}", context={"command": cmd}, cause=exc
            )
        self._output = output
        self._start_reader(_STDOUT, self._process.stdout)
        self._start_reader(_STDERR, self._process.stderr)

    def _start_reader(self, source: str, stream: Optional[IO[str]]) -> None:
        if stream is None:
            return

        def _pump() -> None:
            try:
                for line in stream:
                    self._lines.put((source, line))
            except (OSError, ValueError) as exc:
                logger.warning("Emulator %s reader stopped: %s", source, exc)
            finally:
                self._lines.put((source, _EOF))

        thread = threading.Thread(target=_pump, name=f"emulator-{source}", daemon=True)
        self._readers.append(thread)
        self._open_streams += 1
        thread.start()

    def _dispatch(self, source: str, line: str) -> None:
        if source == _STDOUT:
            if self._output is not None:
                self._output.append(line)
            return
        level, message = parse_emulator_log_line(line)
        emulator_logger.log(level, message)

    def _drain(self, wait: float) -> None:
        """Handle queued lines, blocking at most ``wait`` seconds for the first."""
        try:
            source, line = self._lines.get(timeout=wait) if wait > 0 else self._lines.get_nowait()
        except queue.Empty:
            return
        while True:
            if line is _EOF:
                self._open_streams -= 1
            else:
                self._dispatch(source, line)
            try:
                source, line = self._lines.get_nowait()
            except queue.Empty:
                return

    def _finished(self) -> bool:
        proc = self._process
        return proc is None or (proc.poll() is not None and self._open_streams <= 0)

    def advance(self, cycles: int, stop_token: StopToken) -> CoreStatus:
        budget_end = time.monotonic() + cycles_to_seconds(cycles)
        while True:
            if self._finished():
                self._drain(0)
                return CoreStatus.COMPLETED
            if stop_token.should_stop():
                return CoreStatus.RUNNING
            remaining = budget_end - time.monotonic()
            if remaining <= 0:
                return CoreStatus.RUNNING
            self._drain(min(remaining, POLL_INTERVAL_SECONDS))

    def shutdown_grace(self) -> float:
        """Seconds to wait after SIGTERM before killing the emulator."""
        grace = parse_float_env(os.environ.get(SHUTDOWN_GRACE_ENV))
        if grace is None or grace < 0:
            return SHUTDOWN_GRACE_SECONDS
        return grace

    def request_stop(self) -> None:
        proc = self._process
        if proc and proc.poll() is None:
            logger.info("Terminating emulator process")
            proc.terminate()

    def shutdown(self) -> None:
        proc = self._process
        grace = self.shutdown_grace()
        if proc is not None and proc.poll() is None:
            proc.terminate()
            try:
                proc.wait(timeout=grace)
            except subprocess.TimeoutExpired:
                logger.warning("Force killing emulator process")
                proc.kill()
                proc.wait()
        for thread in self._readers:
            thread.join(timeout=SHUTDOWN_GRACE_SECONDS)
        self._drain(0)
        if proc is not None and proc.returncode not in (None, 0):
            logger.debug("Emulator exited with return code %s", proc.returncode)
        self._readers.clear()
        self._process = None
        self._output = None
