"""
Look up device serial numbers in Configuration Manager hardware inventory, through the AdminService.

Search by hostname (or any part of one), or by a user's primary devices.
"""

import sys
from typing import Annotated, Optional

import typer

from . import logging
from . import Settings

logger = logging.getLogger(__name__)

DEBUG_MODE = False


def _version_callback(value: bool):
    if not value:
        return
    from . import __version__

    print(
        f"uoft-{Settings.app_name} v{__version__} \nPython {sys.version_info.major}."
        f"{sys.version_info.minor} ({sys.executable}) on {sys.platform}"
    )
    raise typer.Exit()


app = typer.Typer(
    name="adminservice",
    context_settings={"max_content_width": 120, "help_option_names": ["-h", "--help"]},
    help=__doc__,  # Use this module's docstring as the main program help text
)


@app.callback(invoke_without_command=True)
@Settings.wrap_typer_command
def callback(
    ctx: typer.Context,
    version: Annotated[
        Optional[bool],
        typer.Option("--version", callback=_version_callback, is_eager=True, help="Show version information and exit"),
    ] = None,
    debug: bool = typer.Option(False, help="Turn on debug logging", envvar="DEBUG"),
    trace: bool = typer.Option(False, help="Turn on trace logging. implies --debug", envvar="TRACE"),
):
    global DEBUG_MODE
    log_level = "INFO"
    if debug:
        log_level = "DEBUG"
        DEBUG_MODE = True
    if trace:
        log_level = "TRACE"
        DEBUG_MODE = True
    logging.basicConfig(level=log_level)
    if ctx.invoked_subcommand is None:
        lookup()


@app.command()
def lookup():
    "Interactively look up serial numbers, by hostname or by primary user. Leave the menu blank to exit."
    from .api import AdminServiceAPI
    from .loop import run_loop

    s = Settings.from_cache()
    with AdminServiceAPI.from_settings(s) as api:
        run_loop(api, s._prompt())


def cli():
    try:
        app()
    except KeyboardInterrupt:
        print("Aborted!")
        sys.exit()
    except Exception as e:
        if DEBUG_MODE:
            raise
        logger.error(e)
        sys.exit(1)
