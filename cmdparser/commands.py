"""
cmdparser command layer: scopes, commands, the root parser and its entry point.

What this module provides
- Scope: the shared machinery of the root parser and of every command:
  • an OptionRegistry (the options of that scope and their current values);
  • the token scanner, a single left-to-right pass that resolves flags,
    coerces values, stores them and fires option callbacks in place;
  • the positional binder (provided_arguments / arguments / extra_args).
- Command: a named scope attached to a parser, with positional arity
  (min_args, max_args, named_args) and an optional callback fired after all of
  its option callbacks.
- Parser: the root scope. It owns the commands, dispatches the first
  positional token to a command, enforces required options and drives the
  whole parse.
- invoke(parser, prompt): thin entry point that turns faults into a printed
  report plus exit status 1 when the parser allows it.

Parse contract (one call to Parser.parse)
1. every registry and every command's positional state is reset;
2. the root scope is scanned; a matching command name hands the remaining
   tokens over to that command's scanner;
3. the matched command checks its minimum arity, then required options of the
   root and of the matched command are checked together;
4. the command callback (if any) fires;
5. the parser is returned for chained queries.

Every fault aborts the parse at once. Callbacks that already fired stay fired.

Quick start
    from cmdparser import Parser

    parser = Parser(allow_process_exit=False)
    parser.add_options([
        {"name": "verbose", "type": "boolean"},
        {"name": "log-level", "type": "choice", "allowed_values": ("info", "debug")},
    ])
    install = parser.add_command("install", min_args=1, max_args=1, named_args=("package",))
    install.add_option("prefix", default="/opt")

    parser.parse(["--verbose", "install", "--prefix=/tmp", "nginx"])
    parser.get_flatten_options(camelize=True)  # {'verbose': True, 'logLevel': 'info'}
    install.arguments                          # {'package': 'nginx'}
"""
import difflib
import logging
import os.path
import re
import shlex
import sys
from collections import deque
from collections.abc import Iterable, Mapping
from types import MappingProxyType

from rich.text import Text

from .faults import *
from .options import Option, OptionRegistry, build_option, coerce
from .utils import *

logger = logging.getLogger(__name__)


class Scope:
    """
    Options + scanner + positional binder shared by Parser and Command.

    Positional results are rewritten on every parse:
    - provided_arguments: positional tokens accepted within the scope capacity.
    - arguments: named_args entry → bound token.
    - extra_args: the first token beyond the capacity and every token after it,
      verbatim (flag-looking ones included, they are no longer parsed).
    """

    provided_arguments = mirror("provided_arguments")
    arguments = mirror("arguments")
    extra_args = mirror("extra_args")

    _named_args = ()

    def __init__(self, scope, /):
        self._registry = OptionRegistry(scope)
        self._provided_arguments = []
        self._arguments = {}
        self._extra_args = []

    @property
    def options(self):
        """
        Read-only mapping of option name → Option, built-in `help` included.
        """
        return self._registry.options

    def add_option(self, source, /, **fields):
        """
        Register one option in this scope and return it.

        Accepted forms
        - add_option(Option("name", ...))
        - add_option({"name": "name", "type": "boolean", ...})
        - add_option("name", type="boolean", ...)

        Raises
        - TypeError / ValueError on malformed declarations or duplicate names.
        """
        if isinstance(source, Option):
            if fields:
                raise TypeError("add_option() cannot combine an Option with extra fields")
            option = source
        elif isinstance(source, Mapping):
            option = build_option({**source, **fields})
        elif isinstance(source, str):
            option = Option(source, **fields)
        else:
            raise TypeError("add_option() argument must be an Option, a mapping or a name")
        self._registry.add(option)
        return option

    def add_options(self, sources, /):
        """
        Register every option of `sources` in order; return them as a tuple.
        """
        if isinstance(sources, str | Mapping | Option) or not isinstance(sources, Iterable):
            raise TypeError("add_options() argument must be an iterable of options")
        return tuple(self.add_option(source) for source in sources)

    def get_option_value(self, name, /):
        return self._registry.value(name)

    def get_flatten_options(self, *, camelize=False, include_help=False):
        """
        Current values as a plain dict; `help` only with include_help=True,
        keys camel-cased with camelize=True ("log-level" → "logLevel").
        """
        return self._registry.flatten(camelize=camelize, include_help=include_help)

    @property
    def _capacity(self):
        return 0

    def _reset(self):
        self._registry.reset()
        self._provided_arguments.clear()
        self._arguments.clear()
        self._extra_args.clear()

    def _scan(self, tokens):
        """
        consume `tokens` (a deque) left to right for this scope.

        per token
        - '--name=value': split on the first '=', resolve 'name', coerce 'value'.
        - '--name' / '--no-name': resolve; non-boolean options take the next
          token as value unless there is none or it starts with '--'.
        - unknown '--' token: UnknownFlagError, right away.
        - anything else: handed to _positional(); a true result stops the scan.

        values are stored and callbacks fired at the token, so callbacks run
        in the order the flags appear on the command line.
        """
        while tokens:
            token = tokens.popleft()

            if not token.startswith("--"):
                if self._positional(token, tokens):
                    return
                continue

            name, separator, value = token.removeprefix("--").partition("=")
            inline = bool(separator)
            option, negated = self._registry.resolve(name, inline=inline)

            if not inline:
                value = Unset
                if option.type != "boolean" and tokens and not tokens[0].startswith("--"):
                    value = tokens.popleft()

            self._registry.assign(option, coerce(option, value, negated))

    def _positional(self, token, tokens):
        """
        bind one positional token; return True when scanning must stop.

        within the capacity the token is appended to provided_arguments and bound
        to the next free name; past it, the token and all remaining tokens are
        moved verbatim to extra_args.
        """
        if len(self._provided_arguments) < self._capacity:
            if (index := len(self._provided_arguments)) < len(self._named_args):
                self._arguments[self._named_args[index]] = token
            self._provided_arguments.append(token)
            return False

        self._extra_args.append(token)
        self._extra_args.extend(tokens)
        tokens.clear()
        logger.debug("%s: %d extra argument(s) captured", self._registry._scope, len(self._extra_args))
        return True


def _sanitize_command_metadata(metadata, /):
    """
    Internal: validate and normalize a command declaration (mutates `metadata`).

    - name: non-empty string without whitespace, matched verbatim against tokens;
      it cannot start with '--' since such tokens are always flags.
    - min_args: int >= 0.
    - max_args: Unset or int >= min_args.
    - named_args: unique identifier strings, no more than max_args (when set).
    - callback: Unset or a callable receiving the command.
    - descr: Unset or a non-empty string.
    """
    if not isinstance(name := metadata["name"], str):
        raise TypeError("command 'name' must be a string")
    elif not (name := name.strip()):
        raise ValueError("command 'name' cannot be empty")
    elif name.startswith("--") or re.search(r"\s", name):
        raise ValueError(f"command 'name' must be a plain word, got {name!r}")
    metadata["name"] = name

    if not isinstance(min_args := metadata["min_args"], int) or isinstance(min_args, bool):
        raise TypeError("command 'min_args' must be an integer")
    elif min_args < 0:
        raise ValueError("command 'min_args' cannot be negative")

    if not isinstance(max_args := metadata["max_args"], int | Unset) or isinstance(max_args, bool):
        raise TypeError("command 'max_args' must be an integer")
    elif isinstance(max_args, int) and max_args < min_args:
        raise ValueError("command 'max_args' cannot be lower than 'min_args'")

    if isinstance(named := metadata["named_args"], str) or not isinstance(named, Iterable):
        raise TypeError("command 'named_args' must be an iterable of strings")
    sanitized = []
    for argument in named:
        if not isinstance(argument, str):
            raise TypeError("command 'named_args' must contain only strings")
        elif not argument.isidentifier():
            raise ValueError(f"command 'named_args' must be identifiers, got {argument!r}")
        elif argument in sanitized:
            raise ValueError("command 'named_args' cannot contain duplicates")
        sanitized.append(argument)
    if isinstance(max_args, int) and len(sanitized) > max_args:
        raise ValueError("command cannot declare more 'named_args' than 'max_args'")
    metadata["named_args"] = tuple(sanitized)

    if metadata["callback"] is not Unset and not callable(metadata["callback"]):
        raise TypeError("command 'callback' must be callable")

    if not isinstance(descr := metadata["descr"], str | Text | Unset):
        raise TypeError("command 'descr' must be a string")
    elif isinstance(descr, str) and not (descr := descr.strip()):
        raise ValueError("command 'descr' cannot be empty")
    metadata["descr"] = coalesce(descr)


class Command(Scope):
    """
    A single-level command: its own options plus positional arity.

    Positional capacity
    - max_args when given; otherwise the larger of len(named_args) and min_args.
    - tokens within the capacity go to provided_arguments (and arguments, while
      names remain), even when no named_args are declared; the first one past
      it switches to extra_args capture.

    Callback
    - callback(command) fires once per parse in which the command matched,
      strictly after its own option callbacks and after validation passed.

    Description
    - descr is stored for help renderers built on top of the parser; parsing
      never reads it.
    """

    name = mirror("name")
    min_args = mirror("min_args")
    max_args = mirror("max_args")
    named_args = mirror("named_args")
    callback = mirror("callback")
    descr = mirror("descr")

    def __init__(
            self,
            name,
            /,
            *,
            min_args=0,
            max_args=Unset,
            named_args=(),
            callback=Unset,
            descr=Unset,
    ):
        metadata = {
            "name": name,
            "min_args": min_args,
            "max_args": max_args,
            "named_args": named_args,
            "callback": callback,
            "descr": descr,
        }
        _sanitize_command_metadata(metadata)
        super().__init__(f"command {metadata['name']!r}")
        for name, object in metadata.items():
            setattr(self, "_" + name, object)

    @property
    def _capacity(self):
        return coalesce(self._max_args, max(len(self._named_args), self._min_args))

    def _check_arity(self):
        if (count := len(self._provided_arguments)) >= self._min_args:
            return
        noun = pluralize("argument", self._min_args)
        raise ArityError(
            "Command '%s' requires at least %d %s, got %d" % (self._name, self._min_args, noun, count),
            code=FaultCode.NOT_ENOUGH_ARGUMENTS,
            title="not enough arguments",
            hint="pass %s after '%s'" % (", ".join(self._named_args) or "the missing values", self._name),
            command=self,
            provided=tuple(self._provided_arguments),
        )

    def __call__(self):
        if self._callback is Unset:
            return
        return self._callback(self)

    def __rich_repr__(self):
        yield "name", self.name
        yield "min_args", self.min_args
        yield "max_args", self.max_args
        yield "named_args", self.named_args
        yield "options", tuple(self.options)

    def __repr__(self):
        return "command(%s)" % ", ".join("%s=%r" % pair for pair in self.__rich_repr__())


class Parser(Scope):
    """
    Root scope and parse orchestrator.

    Configuration (stored and forwarded to invoke(); never read while parsing)
    - printer: Callable[[str], Any] receiving rendered fault reports
      (default: the rich stderr console).
    - allow_process_exit: bool, whether invoke() may print and sys.exit(1).
    - colorful / fancy: rich styling of fault reports.
    - name: program name shown in fault headers (default: basename of argv[0]).

    Root positionals
    - with no commands registered, positional tokens are captured in
      extra_args (the root declares no named arguments);
    - with commands registered, the first positional must name one of them.
    """

    def __init__(
            self,
            *,
            printer=Unset,
            allow_process_exit=True,
            colorful=False,
            fancy=False,
            name=Unset,
    ):
        super().__init__("root")
        if printer is not Unset and not callable(printer):
            raise TypeError("parser 'printer' must be callable")
        if not isinstance(name, str | Unset):
            raise TypeError("parser 'name' must be a string")
        self._printer = printer
        self._allow_process_exit = bool(allow_process_exit)
        self._colorful = bool(colorful)
        self._fancy = bool(fancy)
        self._name = coalesce(name, os.path.basename(sys.argv[0]) or "cmdparser")
        self._commands = {}
        self._command = None

    @property
    def printer(self):
        return self._printer

    @property
    def allow_process_exit(self):
        return self._allow_process_exit

    @property
    def colorful(self):
        return self._colorful

    @property
    def fancy(self):
        return self._fancy

    @property
    def name(self):
        return self._name

    @property
    def commands(self):
        return MappingProxyType(self._commands)

    @property
    def command(self):
        """
        The command matched by the last parse, or None.
        """
        return self._command

    def add_command(self, source, options=(), /, **fields):
        """
        Create (or attach) a command and return it.

        Forms
        - add_command("hello", [...options], min_args=1, named_args=("who",))
        - add_command({"name": "hello", "callback": on_hello}, [...options])
        - add_command(Command("hello"))

        `options` go through Command.add_options, exactly as a later call would.
        The command is registered only once all of them were accepted.
        """
        if isinstance(source, Command):
            if fields:
                raise TypeError("add_command() cannot combine a Command with extra fields")
            command = source
        elif isinstance(source, Mapping):
            fields = {**source, **fields}
            try:
                name = fields.pop("name")
            except KeyError:
                raise TypeError("command mapping must define a 'name'") from None
            command = Command(name, **fields)
        elif isinstance(source, str):
            command = Command(source, **fields)
        else:
            raise TypeError("add_command() argument must be a Command, a mapping or a name")

        if command.name in self._commands:
            raise ValueError(f"command name {command.name!r} is already in use")
        command.add_options(options)
        self._commands[command.name] = command
        return command

    def parse(self, argv, /):
        """
        Parse an argument vector (program name excluded) and return the parser.

        Raises
        - ParserException subclasses (UnknownFlagError, MissingValueError,
          InvalidBooleanError, InvalidChoiceError, DuplicatedFlagError,
          UnknownCommandError, ArityError, MissingRequiredError).
        - TypeError when argv is not an iterable of strings.
        """
        if isinstance(argv, str) or not isinstance(argv, Iterable):
            raise TypeError("parse() argument must be an iterable of strings")
        tokens = deque(argv)
        if not all(isinstance(token, str) for token in tokens):
            raise TypeError("parse() argument must be an iterable of strings")

        logger.debug("parsing %d token(s)", len(tokens))
        self._command = None
        for scope in (self, *self._commands.values()):
            scope._reset()

        self._scan(tokens)

        if self._command is not None:
            self._command._check_arity()

        missing = self._registry.missing()
        if self._command is not None:
            missing += self._command._registry.missing()
        if missing:
            names = [option.name for option in missing]
            logger.debug("missing required options: %s", names)
            raise MissingRequiredError(
                "The following options are required: %s" % ", ".join(names),
                code=FaultCode.MISSING_REQUIRED,
                title="missing required %s" % pluralize("option", len(names)),
                hint="add %s" % " ".join("--%s" % name for name in names),
                missing=tuple(names),
            )

        if self._command is not None:
            self._command()
        return self

    def _positional(self, token, tokens):
        if not self._commands:
            return super()._positional(token, tokens)

        try:
            command = self._commands[token]
        except KeyError:
            suggestions = difflib.get_close_matches(token, self._commands.keys(), 3)
            raise UnknownCommandError(
                "Unknown command: %s" % token,
                code=FaultCode.UNKNOWN_COMMAND,
                title="unknown command",
                hint="did you mean %r?" % suggestions[0] if suggestions else "available commands: %s" % ", ".join(self._commands),
                input=token,
                suggestions=suggestions,
            ) from None

        logger.debug("dispatching to command %r with %d token(s)", command.name, len(tokens))
        self._command = command
        command._scan(tokens)
        return True

    def __rich_repr__(self):
        yield "name", self.name
        yield "options", tuple(self.options)
        yield "commands", tuple(self.commands)

    def __repr__(self):
        return "parser(%s)" % ", ".join("%s=%r" % pair for pair in self.__rich_repr__())


def invoke(parser, prompt=Unset, /):
    """
    Parse a prompt with `parser`, reporting faults the way the parser allows.

    Parameters
    - parser: Parser.
    - prompt:
      • Unset: sys.argv[1:].
      • str: split shell-style with shlex.split.
      • Iterable[str]: used as-is (empty strings are legitimate values).

    Behavior
    - On success, returns the parser.
    - On a ParserException:
      • allow_process_exit=False: the fault propagates unchanged;
      • allow_process_exit=True: the fault is rendered with rich, passed to the
        parser printer (or the stderr console) and the process exits with 1.
    """
    if not isinstance(parser, Parser):
        raise TypeError("invoke() first argument must be a parser")

    if prompt is Unset:
        tokens = sys.argv[1:]
    elif isinstance(prompt, str):
        tokens = shlex.split(prompt)
    elif isinstance(prompt, Iterable):
        tokens = list(prompt)
        if not all(isinstance(token, str) for token in tokens):
            raise TypeError("invoke() prompt must be a string or an iterable of strings")
    else:
        raise TypeError("invoke() prompt must be a string or an iterable of strings")

    try:
        return parser.parse(tokens)
    except ParserException as fault:
        if not parser.allow_process_exit:
            raise
        logger.debug("reporting %s and exiting", type(fault).__name__)
        trigger(
            fault,
            shell=True,
            printer=parser.printer,
            prog=parser.name,
            colorful=parser.colorful,
            fancy=parser.fancy,
        )


__all__ = (
    "Scope",
    "Command",
    "Parser",
    "invoke",
)
