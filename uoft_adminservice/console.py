from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from rich.console import Console

_CONSOLE = None
_STDOUT_CONSOLE = None


def _theme():
    from rich.theme import Theme
    from rich.style import Style

    return Theme(
        {
            "logging.level.debug": Style(color="yellow"),
            "logging.level.trace": Style(color="magenta"),
            "logging.level.success": Style(color="green"),
            "menu.index": Style(color="cyan", bold=True),
            "outcome.error": Style(color="red"),
        }
    )


def console() -> "Console":
    "a global on-demand console instance, writing to stderr. Used for logging."
    # Console is thread safe, so one instance manages sys.stderr for the whole program
    global _CONSOLE
    if _CONSOLE is None:
        from rich.console import Console

        _CONSOLE = Console(stderr=True, theme=_theme())
    return _CONSOLE


def stdout_console() -> "Console":
    "a global on-demand console instance that prints to stdout. Used for menus and result tables."
    global _STDOUT_CONSOLE
    if _STDOUT_CONSOLE is None:
        from rich.console import Console

        _STDOUT_CONSOLE = Console(theme=_theme())
    return _STDOUT_CONSOLE
