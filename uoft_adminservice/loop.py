"""
The interactive lookup loop.

Each pass through the loop asks for a search mode and a search term, narrows the matching devices
down with the user, resolves their serial numbers, and prints them. Each pass is handled by
`run_iteration`, which never raises: it returns an `Outcome` describing what happened, and the loop
renders it and goes around again until the user leaves the mode prompt blank.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING

from rich.markup import escape
from rich.table import Table

from . import logging
from .api import AdminServiceAPI
from .console import stdout_console
from .errors import (
    AdminServiceError,
    AuthError,
    SelectionError,
    ServiceError,
    TransportError,
    ValidationError,
)
from .prompt import Prompt
from .resolver import find_by_hostname_fragment, find_by_username
from .serial import ResultRow, resolve_serials

if TYPE_CHECKING:
    from rich.console import Console

logger = logging.getLogger(__name__)


class Mode(str, Enum):
    hostname = "1"
    username = "2"

    @property
    def label(self) -> str:
        return {Mode.hostname: "Hostname (or part of one)", Mode.username: "Username"}[self]

    @classmethod
    def from_answer(cls, answer: str) -> "Mode | None":
        "None means the user asked to exit"
        answer = answer.strip().lower()
        if not answer:
            return None
        for mode in cls:
            if answer in (mode.value, mode.name, mode.name[0]):
                return mode
        raise SelectionError(f"'{answer}' is not a valid search mode, expected 1 or 2")


class OutcomeKind(str, Enum):
    success = "success"
    no_results = "no_results"
    exit = "exit"
    validation_error = "validation_error"
    selection_error = "selection_error"
    transport_error = "transport_error"
    auth_error = "auth_error"
    service_error = "service_error"
    unexpected_error = "unexpected_error"

    @property
    def is_error(self) -> bool:
        return self.value.endswith("_error")


_ERROR_KINDS: list[tuple[type[AdminServiceError], OutcomeKind]] = [
    (ValidationError, OutcomeKind.validation_error),
    (SelectionError, OutcomeKind.selection_error),
    (TransportError, OutcomeKind.transport_error),
    (AuthError, OutcomeKind.auth_error),
    (ServiceError, OutcomeKind.service_error),
]


@dataclass(eq=False, kw_only=True)
class Outcome:
    kind: OutcomeKind
    mode: Mode | None = None
    search: str | None = None
    rows: list[ResultRow] = field(default_factory=list)
    message: str | None = None

    @classmethod
    def from_error(cls, error: Exception, mode: Mode | None = None, search: str | None = None) -> "Outcome":
        for error_type, kind in _ERROR_KINDS:
            if isinstance(error, error_type):
                return cls(kind=kind, mode=mode, search=search, message=error.describe())  # type: ignore
        if isinstance(error, AdminServiceError):
            return cls(kind=OutcomeKind.service_error, mode=mode, search=search, message=error.describe())
        return cls(
            kind=OutcomeKind.unexpected_error,
            mode=mode,
            search=search,
            message=f"{error.__class__.__name__}: {error}",
        )


def lookup(api: AdminServiceAPI, prompt: Prompt, mode: Mode, search: str) -> list[ResultRow]:
    """
    Search for devices, let the user pick among them, and resolve their serial numbers.

    Any error propagates. There is no partial result if one serial lookup in a batch fails.
    """
    if mode is Mode.hostname:
        candidates = find_by_hostname_fragment(api, search)
    else:
        candidates = find_by_username(api, search)
    if not candidates:
        return []
    selected = prompt.disambiguate(
        candidates,
        lambda c: c.display,
        title=f"{len(candidates)} devices match '{search}':",
    )
    return resolve_serials(api, selected)


def select_mode(prompt: Prompt) -> Mode | None:
    con = stdout_console()
    con.print()
    con.print("  [menu.index]1[/menu.index]  Search by hostname", highlight=False)
    con.print("  [menu.index]2[/menu.index]  Search by primary user", highlight=False)
    con.print("     Leave blank to exit")
    answer = prompt.get_from_choices("Search mode", [m.value for m in Mode])
    return Mode.from_answer(answer)


def run_iteration(api: AdminServiceAPI, prompt: Prompt) -> Outcome:
    mode = None
    search = None
    try:
        mode = select_mode(prompt)
        if mode is None:
            return Outcome(kind=OutcomeKind.exit)
        with logging.Context(mode.name):
            search = prompt.get_string(mode.label)
            rows = lookup(api, prompt, mode, search)
    except EOFError:
        # ctrl-d at any prompt
        return Outcome(kind=OutcomeKind.exit)
    except AdminServiceError as e:
        return Outcome.from_error(e, mode, search)
    except Exception as e:
        logger.debug("Unexpected error during lookup", exc_info=True)
        return Outcome.from_error(e, mode, search)
    if not rows:
        return Outcome(kind=OutcomeKind.no_results, mode=mode, search=search)
    return Outcome(kind=OutcomeKind.success, mode=mode, search=search, rows=rows)


def results_table(outcome: Outcome) -> Table:
    table = Table(title=escape(f"Serial numbers for '{outcome.search}'"))
    table.add_column("Hostname")
    table.add_column("SerialNumber")
    for row in outcome.rows:
        table.add_row(escape(row.hostname), escape(row.serial_number))
    return table


def render(outcome: Outcome, con: "Console | None" = None):
    con = con or stdout_console()
    if outcome.kind is OutcomeKind.success:
        con.print(results_table(outcome))
    elif outcome.kind is OutcomeKind.no_results:
        con.print(escape(f"No devices found matching '{outcome.search}'"), highlight=False)
    elif outcome.kind.is_error:
        con.print(f"[outcome.error]{escape(outcome.message or '')}[/outcome.error]", highlight=False)


def run_loop(api: AdminServiceAPI, prompt: Prompt, con: "Console | None" = None) -> None:
    "Run lookups until the user leaves the mode prompt blank"
    con = con or stdout_console()
    site = f" (site {api.site_code})" if api.site_code else ""
    con.print(f"Connected to [bold]{api.url.host}[/bold]{site}")
    iteration = 0
    while True:
        iteration += 1
        outcome = run_iteration(api, prompt)
        if outcome.kind is OutcomeKind.exit:
            logger.debug("Exiting lookup loop")
            break
        if outcome.kind.is_error:
            logger.debug(f"Iteration {iteration} failed: {outcome.message}")
        elif outcome.kind is OutcomeKind.success:
            logger.success(f"Found {len(outcome.rows)} serial number(s) for '{outcome.search}'")
        else:
            logger.debug(f"Iteration {iteration}: {outcome.kind.value}, {len(outcome.rows)} row(s)")
        render(outcome, con)
