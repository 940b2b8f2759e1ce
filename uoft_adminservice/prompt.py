from typing import Any, Callable, Sequence, TypeVar
from pathlib import Path
from base64 import urlsafe_b64encode
import re
import sys

from prompt_toolkit import PromptSession
from prompt_toolkit.history import FileHistory
from prompt_toolkit.auto_suggest import AutoSuggestFromHistory
from prompt_toolkit.formatted_text import FormattedText
from prompt_toolkit.completion import WordCompleter
from prompt_toolkit.output.defaults import create_output

from rich.markup import escape

from .console import stdout_console
from .errors import SelectionError

T = TypeVar("T")

SELECT_ALL = "A"
# ascii digits only, `\d` matches any unicode digit
_INDEX = re.compile(r"[0-9]+")

_output = None


def output():
    # prompts render to stderr so stdout stays clean for result tables
    global _output
    if _output is None:
        _output = create_output(stdout=sys.stderr)
    return _output


def _hash(s: str) -> str:
    return urlsafe_b64encode(s.encode()).decode()


class Prompt:
    def __init__(self, history_cache: Path | None = None):
        if history_cache and not history_cache.exists():
            history_cache.mkdir(parents=True)
        self.history_cache = history_cache

    def get_string(
        self,
        var: str,
        description: str | None = None,
        default_value: str | None = None,
        is_password: bool = False,
        **kwargs,
    ) -> str:
        if not var.endswith(": "):
            var = f"{var}: "
        message = FormattedText([("#ffffff #888888", var)])
        opts: dict[str, Any] = dict(
            message=message,
            bottom_toolbar="",
        )
        if default_value:
            opts["default"] = default_value
        if description:
            opts["bottom_toolbar"] = description

        history = None
        if is_password:
            opts["is_password"] = True
        elif self.history_cache:
            history = FileHistory(f"{self.history_cache}/{_hash(var)}")
            opts["auto_suggest"] = AutoSuggestFromHistory()

        opts.update(kwargs)
        return PromptSession(history=history, output=output()).prompt(**opts)

    def get_from_choices(
        self,
        var: str,
        choices: Sequence[str],
        description: str | None = None,
        default_value: str | None = None,
        **kwargs,
    ) -> str:
        """
        Prompt with tab-completion over `choices`.

        The answer is returned as typed; checking it against `choices` is up to the caller,
        so that an invalid answer can be reported instead of silently re-prompted.
        """
        choices_str = ", ".join(choices)
        kwargs.setdefault("rprompt", FormattedText([("", "Valid options are: "), ("bold", choices_str)]))
        opts = dict(
            completer=WordCompleter(list(choices)),
            complete_while_typing=True,
        )
        opts.update(kwargs)
        return self.get_string(var, description, default_value, **opts)

    def disambiguate(self, items: Sequence[T], display: Callable[[T], str], title: str | None = None) -> list[T]:
        """
        Narrow a list of items down to the ones the user wants.

        Lists of zero or one item are returned unchanged without prompting.
        Otherwise every item is printed with its zero-based index, and one line is read:
        an index selects that single item, and `A` (any case) selects all of them.

        Raises:
            SelectionError: for anything else, including out-of-range indices and blank input.
                There is no re-prompt.
        """
        items = list(items)
        if len(items) <= 1:
            return items

        con = stdout_console()
        if title:
            con.print(escape(title), highlight=False)
        for index, item in enumerate(items):
            con.print(f"  [menu.index]{index}[/menu.index]  {escape(display(item))}", highlight=False)

        answer = self.get_string(
            "Selection",
            description=f"Enter an index between 0 and {len(items) - 1}, or {SELECT_ALL} for all of them",
        ).strip()

        if answer.upper() == SELECT_ALL:
            return items
        if _INDEX.fullmatch(answer):
            index = int(answer)
            if index < len(items):
                return [items[index]]
            raise SelectionError(f"{index} is out of range, expected 0 to {len(items) - 1}")
        raise SelectionError(f"'{answer}' is not a valid selection, expected an index or {SELECT_ALL}")
