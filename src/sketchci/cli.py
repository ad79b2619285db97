# cli.py
from __future__ import annotations

import sys
import tempfile
from pathlib import Path

import click

from sketchci.backend import ArduinoBackend, BackendNotFound
from sketchci.config import CIConfig, ConfigError
from sketchci.reporter import SelfTestDetected
from sketchci.runner import CLIOptions, run_ci
from sketchci.ui.console import Console, get_console, set_console


@click.group()
@click.option(
    "--debug",
    is_flag=True,
    default=False,
    help="Enable debug mode (show stack traces and detailed output)",
)
@click.pass_context
def cli(ctx, debug):
    """sketchci: unit tests and example builds for Arduino libraries."""
    console = Console(debug=debug)
    set_console(console)
    ctx.ensure_object(dict)
    ctx.obj["debug"] = debug


@cli.command()
@click.option("--skip-unittests", is_flag=True, default=False, help="Don't run unit tests")
@click.option(
    "--skip-examples-compilation",
    "skip_compilation",
    is_flag=True,
    default=False,
    help="Don't compile example sketches",
)
@click.option("--testfile-select", multiple=True, metavar="GLOB", help="Unit test file (or glob) to select")
@click.option("--testfile-reject", multiple=True, metavar="GLOB", help="Unit test file (or glob) to reject")
@click.option(
    "--library",
    "library_path",
    default=".",
    show_default=True,
    type=click.Path(exists=True, file_okay=False, path_type=Path),
    help="Library under test",
)
@click.option(
    "--arduino-cli",
    "arduino_cli",
    default=None,
    envvar="SKETCHCI_ARDUINO_CLI",
    help="arduino-cli binary to use (defaults to the one on PATH)",
)
@click.option(
    "--framework-include",
    default=None,
    envvar="SKETCHCI_FRAMEWORK_INCLUDE",
    type=click.Path(exists=True, file_okay=False, path_type=Path),
    help="Directory with the host-side Arduino headers used by unit tests",
)
@click.pass_context
def run(
    ctx,
    skip_unittests,
    skip_compilation,
    testfile_select,
    testfile_reject,
    library_path,
    arduino_cli,
    framework_include,
):
    """Install the library, run its unit tests and compile its examples."""
    console = get_console()
    options = CLIOptions(
        skip_unittests=skip_unittests,
        skip_compilation=skip_compilation,
        testfile_select=tuple(testfile_select),
        testfile_reject=tuple(testfile_reject),
    )

    try:
        config = CIConfig.default().from_project_library(library_path)
        console.print_debug(f"Config loaded for {library_path.resolve()}")
        # unit-test executables live only as long as the run
        with tempfile.TemporaryDirectory(prefix="sketchci-") as build_dir:
            backend = ArduinoBackend.locate(
                arduino_cli,
                framework_include=framework_include,
                build_dir=Path(build_dir),
            )
            status = run_ci(backend, config, library_path, options, console=console)
    except SelfTestDetected as e:
        console.print_debug(str(e))
        sys.exit(1)
    except BackendNotFound as e:
        console.print_error(
            "Backend not found",
            str(e),
            suggestion="Install arduino-cli or point at it explicitly:\n  sketchci run --arduino-cli /path/to/arduino-cli",
        )
        sys.exit(1)
    except ConfigError as e:
        console.print_error("Invalid configuration", str(e))
        sys.exit(1)
    except KeyboardInterrupt:
        console.print_info("\nInterrupted by user")
        sys.exit(130)
    except Exception as e:
        console.print_exception(e)
        sys.exit(1)

    sys.exit(status)


def main() -> None:
    cli()


if __name__ == "__main__":
    main()
