"""
cmdparser faults (parse errors) and their rendering.

Scope
- FaultCode: stable numeric identifiers for every user-facing parse failure.
- ParserException: base error raised by the engine. It carries the exact,
  human-readable message (str(fault) == fault.message) plus a read-only
  `options` mapping with the code, a short title, a hint and the context
  (input token, option, command, missing names...).
- trigger(): surface a fault, either raising it or printing it and exiting.
- render(): capture any rich renderable (a fault included) into plain text.

Propagation
- The engine never prints. Every failure aborts the running parse by raising.
- The entry point (cmdparser.commands.invoke) decides between re-raising and
  printing + sys.exit(1), based on the parser configuration.
"""
import copy
import io
import sys
from collections import defaultdict
from enum import IntEnum
from types import MappingProxyType

from rich.console import Console, Group
from rich.panel import Panel
from rich.text import Text

from .utils import Unset, coalesce

console = Console(stderr=True)


class FaultCode(IntEnum):
    """
    canonical fault codes raised by the parser.

    grouping
    - routing (1110x): UNKNOWN_COMMAND
    - flags (1111x): UNKNOWN_FLAG, DUPLICATED_FLAG, MISSING_VALUE
    - values (1112x): INVALID_BOOLEAN, INVALID_CHOICE, NO_VALID_CHOICE
    - completeness (1113x): MISSING_REQUIRED, NOT_ENOUGH_ARGUMENTS
    """
    # --- routing ---
    UNKNOWN_COMMAND      = 11101

    # --- flags ---
    UNKNOWN_FLAG         = 11111
    DUPLICATED_FLAG      = 11112
    MISSING_VALUE        = 11113

    # --- values ---
    INVALID_BOOLEAN      = 11121
    INVALID_CHOICE       = 11122
    NO_VALID_CHOICE      = 11123

    # --- completeness ---
    MISSING_REQUIRED     = 11131
    NOT_ENOUGH_ARGUMENTS = 11132

    def normalize(self):
        """
        return a printable label for this code.

        a host application may define a __codes__ mapping in __main__ to
        relabel codes; otherwise the numeric value is used.
        """
        return str(getattr(__import__("__main__"), "__codes__", {}).get(self, self.value))


class ParserException(Exception):
    """
    Base class of every failure raised while parsing an argument vector.

    Parameters
    - message: str, the exact text surfaced to callers and tests.
    - **options: rendering/context data. Recognized keys: code, title, hint,
      prog, colorful, fancy, printer, shell; anything else is kept as context.
    """

    def __init__(self, message=Unset, /, **options):
        assert isinstance(message, str | Unset)
        super().__init__(*(() if message is Unset else (message,)))
        self.message = message
        self.options = MappingProxyType(options)

    def __str__(self):
        return "" if self.message is Unset else self.message

    def __rich__(self):
        main = __import__("__main__")
        colorful = self.options.get("colorful", False)

        styles = defaultdict(str, {
            "prog-name": "bold #E6E6F0",
            "code": "bold #00E5FF",
            "error-title": "bold #FF4DA6",
            "error-message": "#C8C8D0",
            "hint-arrow": "#9CE19C dim",
            "hint": "italic #9CE19C",
        } | getattr(main, "__styles__", {}))

        def text(fragment, style):
            if not fragment:
                return Text("")
            return Text(str(fragment), styles[style] if colorful else "")

        code = self.options.get("code")
        header = Text.assemble(
            "[ ",
            text(getattr(main, "__prog__", self.options.get("prog", "cmdparser")), "prog-name"),
            " — ",
            text(code.normalize() if code else "error", "code"),
            " | ",
            text(self.options.get("title", "parse error").title(), "error-title"),
            " ]"
        )
        message = text(str(self), "error-message")
        parts = [message]
        if hint := self.options.get("hint"):
            parts.append(Text.assemble(text(" → ", "hint-arrow"), text(hint, "hint")))

        if self.options.get("fancy", False):
            return Panel(Group(*parts), title=header, title_align="left")
        return Group(header, *parts)

    def __trigger__(self) -> None:
        if not self.options.get("shell", False):
            raise self
        printer = self.options.get("printer", Unset)
        if printer is Unset:
            console.print(self)
        else:
            printer(render(self, colorful=self.options.get("colorful", False)).rstrip("\n"))
        sys.exit(1)

    def __replace__(self, *unused, **overrides):
        assert not unused, "positional arguments are not allowed"
        replaced = type(self)(self.message, **{**self.options, **overrides})
        replaced.__cause__ = self.__cause__
        return replaced


class UnknownFlagError(ParserException): ...
class DuplicatedFlagError(ParserException): ...
class MissingValueError(ParserException): ...
class InvalidBooleanError(ParserException): ...
class InvalidChoiceError(ParserException): ...
class MissingRequiredError(ParserException): ...
class ArityError(ParserException): ...
class UnknownCommandError(ParserException): ...


def render(renderable, /, *, colorful=False, width=Unset):
    """
    render a rich renderable into a string.

    colorful=True keeps ANSI styling (forces a terminal); otherwise the
    output is plain text suitable for any printer function.
    """
    capture = Console(
        file=io.StringIO(),
        force_terminal=colorful,
        color_system="truecolor" if colorful else None,
        width=coalesce(width, 100),
        highlight=False,
    )
    capture.print(renderable)
    return capture.file.getvalue()


def trigger(fault, /, **options):
    """
    surface a fault with the given runtime options.

    contract
    - fault must provide __trigger__ and __replace__ (ParserException does).
    - options are merged into a copy of the fault before triggering.
    - shell=False (default) raises the fault; shell=True prints it through
      `printer` (or the stderr console) and exits with status 1.
    """
    if (
        not hasattr(fault, "__trigger__") or
        not callable(fault.__trigger__) or
        not hasattr(fault, "__replace__") or
        not callable(fault.__replace__)
    ):
        raise TypeError("trigger() argument must have a __trigger__ and __replace__ methods")
    copy.replace(fault, **options).__trigger__()


__all__ = (
    "FaultCode",
    "ParserException",
    "UnknownFlagError",
    "DuplicatedFlagError",
    "MissingValueError",
    "InvalidBooleanError",
    "InvalidChoiceError",
    "MissingRequiredError",
    "ArityError",
    "UnknownCommandError",
    "render",
    "trigger",
)
