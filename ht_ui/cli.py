"""
Command-line interface for the headless test runner.

Translates flags into a RunConfig, runs exactly one test and exits with
1 on malformed input or boot failure, 0 otherwise. Pass/fail travels
through the TeamCity messages and the comparison output, never the
exit status.
"""

from __future__ import annotations

import sys
from pathlib import Path
from typing import List, Optional

import typer
from pydantic import ValidationError

from ht_common.config.env import parse_float_prefix
from ht_common.errors import ConfigurationError
from ht_common.logging import configure_logging
from ht_runner.api import run_test
from ht_runner.models.config import DEFAULT_CORE, CpuMode, GraphicsBackendName, RunConfig

# Bare --graphics selects the GPU backend.
DEFAULT_GPU_BACKEND = GraphicsBackendName.GLES

app = typer.Typer(
    help=(
        "Headless test runner. This is primarily meant as a non-interactive test tool: "
        "boot FILE, run it to completion or timeout, and report the result."
    ),
    add_completion=False,
    pretty_exceptions_enable=False,
    context_settings={"help_option_names": ["-h", "--help"]},
)


def parse_backend(value: Optional[str]) -> GraphicsBackendName:
    """Map a --graphics value (case-insensitive) to a backend."""
    if value is None:
        return GraphicsBackendName.NULL
    try:
        return GraphicsBackendName(value.strip().lower())
    except ValueError:
        raise ConfigurationError(
            "Unknown gpu backend specified after --graphics=",
            context={"backend": value},
        )


def parse_timeout(value: Optional[str]) -> Optional[float]:
    """Permissive seconds parsing; None or negative means no deadline."""
    if value is None:
        return None
    if not value.strip():
        raise ConfigurationError("Missing value after --timeout=")
    seconds = parse_float_prefix(value)
    return None if seconds < 0 else seconds


def build_config(
    boot_target: Optional[Path],
    *,
    mount: Optional[Path] = None,
    full_log: bool = False,
    jit: bool = True,
    compare: bool = False,
    graphics: Optional[str] = None,
    screenshot: Optional[Path] = None,
    timeout: Optional[str] = None,
    teamcity: bool = False,
    core: str = DEFAULT_CORE,
) -> RunConfig:
    """Build the immutable run configuration from parsed flags."""
    if boot_target is None:
        raise ConfigurationError("No executable specified")
    try:
        return RunConfig(
            boot_target=boot_target,
            cpu_mode=CpuMode.JIT if jit else CpuMode.INTERPRETER,
            graphics=parse_backend(graphics),
            mount_image=mount,
            timeout_seconds=parse_timeout(timeout),
            screenshot=screenshot,
            compare_output=compare,
            full_log=full_log,
            teamcity=teamcity,
            core=core,
        )
    except ValidationError as exc:
        raise ConfigurationError(f"Invalid configuration: {exc}", cause=exc)


@app.command()
def headless(
    ctx: typer.Context,
    boot_target: Optional[Path] = typer.Argument(
        None, metavar="FILE", help="Test executable (.prx/.elf) to boot.", show_default=False
    ),
    mount: Optional[Path] = typer.Option(
        None, "--mount", "-m", metavar="IMAGE", help="Mount a disc image (iso/cso) on umd:."
    ),
    full_log: bool = typer.Option(
        False, "--log", "-l", help="Full log output, not just emulated printfs."
    ),
    jit: bool = typer.Option(
        True, "-j/-i", help="Use the JIT (default) or the interpreter."
    ),
    compare: bool = typer.Option(
        False, "--compare", "-c", help="Compare with output in FILE.expected."
    ),
    graphics: Optional[str] = typer.Option(
        None,
        "--graphics",
        metavar="BACKEND",
        help="Use a full gpu backend (slower): gles, software, directx9, null. "
        "Bare --graphics selects gles.",
    ),
    screenshot: Optional[Path] = typer.Option(
        None, "--screenshot", metavar="FILE", help="Compare every frame against a screenshot."
    ),
    timeout: Optional[str] = typer.Option(
        None, "--timeout", metavar="SECONDS", help="Abort the test if it takes longer than SECONDS."
    ),
    teamcity: bool = typer.Option(
        False, "--teamcity", help="Emit TeamCity service messages for the test."
    ),
    core: str = typer.Option(
        DEFAULT_CORE, "--core", envvar="HT_CORE", help="Registered emulation core to use."
    ),
) -> None:
    """Boot FILE headless and run it as a single test."""
    try:
        config = build_config(
            boot_target,
            mount=mount,
            full_log=full_log,
            jit=jit,
            compare=compare,
            graphics=graphics,
            screenshot=screenshot,
            timeout=timeout,
            teamcity=teamcity,
            core=core,
        )
    except ConfigurationError as exc:
        _print_usage(ctx, str(exc))
        raise typer.Exit(1)
    configure_logging(debug=config.full_log, force=True)
    outcome = run_test(config)
    raise typer.Exit(outcome.exit_code)


def normalize_argv(argv: List[str]) -> List[str]:
    """Expand a bare ``--graphics`` into ``--graphics=gles``."""
    return [f"--graphics={DEFAULT_GPU_BACKEND.value}" if arg == "--graphics" else arg for arg in argv]


def _print_usage(ctx: typer.Context, reason: str) -> None:
    typer.echo(f"Error: {reason}\n", err=True)
    typer.echo(ctx.get_usage(), err=True)
    typer.echo(f"Try '{ctx.command_path} -h' for the full option list.", err=True)


def main(argv: Optional[List[str]] = None) -> int:
    """Parse ``argv`` and run the test; returns the process exit code.

    Parse errors exit with status 2 from Typer; they are folded into 1.
    """
    args = normalize_argv(list(sys.argv[1:] if argv is None else argv))
    try:
        app(args=args, prog_name="ht-headless")
    except SystemExit as exc:
        return _exit_status(exc.code)
    return 0


def _exit_status(code: object) -> int:
    if code is None or code == 0:
        return 0
    return 1


def entrypoint() -> None:
    """Console-script entry point."""
    sys.exit(main())


if __name__ == "__main__":  # pragma: no cover
    entrypoint()
