"""
cmdparser option descriptors, value coercion and per-scope registries.

Overview
- Option: immutable schema for one `--flag` (name, type, default, constraints,
  callback). Declaration mistakes are rejected at construction time with
  TypeError/ValueError; they are programming errors, not parse faults.
- Value coercion: pure functions turning the raw token (or its absence) into a
  typed value for each option type:
  • boolean: bare flag → True, negated flag → False, inline literal parsed
    case-insensitively from {0, false, no} / {1, true, yes}.
  • string: any token, the empty string included; absence is a fault.
  • choice: like string, restricted to `allowed_values`.
- OptionRegistry: the ordered set of options of one scope (the root parser or
  one command) together with their current values. Every registry starts with
  the built-in boolean `help` option.

Types
- "boolean", "string" (default), "choice".

Quick example:
    >>> registry = OptionRegistry()
    >>> registry.add(Option("log-level", type="choice", allowed_values=("info", "debug")))
    >>> registry.reset()
    >>> registry.value("log-level")
    'info'
"""
import builtins
import difflib
import functools
import logging
import operator
import re
from collections.abc import Iterable, Mapping, Set
from types import MappingProxyType

from rich.text import Text

from . import utils
from .faults import *
from .utils import *

logger = logging.getLogger(__name__)

TYPES = ("boolean", "string", "choice")

FALSY = frozenset({"0", "false", "no"})
TRUTHY = frozenset({"1", "true", "yes"})

NAME_PATTERN = r"[^\W\d_][^\W_]*(?:-[^\W_]+)*"


class OptionType(type):
    """
    Metaclass giving option-like classes a stable repr and read-only fields.

    - __typename__ is the hyphenated, lower-cased class name ("option").
    - Every name in __introspectable__ becomes a read-only property mirroring
      the private "_<name>" field.
    - __rich_repr__ yields __displayable__ (or __introspectable__) fields for
      pretty printers; __repr__ is built from it.
    """
    __introspectable__ = ()
    __displayable__ = Unset

    def __new__(cls, name, bases, namespace, **options):
        self = super().__new__(
            cls,
            name,
            bases,
            namespace | {
                "__typename__": re.sub(r"(?<!^)(?=[A-Z])", r"-", name).lower(),
            } | {
                name: mirror(name) for name in namespace.get("__introspectable__", ())
            },
        )

        @rename("__repr__")
        def __repr__(self):
            return f"{type(self).__typename__}({
                ", ".join(map(functools.partial(operator.mod, "%s=%r"), self.__rich_repr__()))
            })"
        self.__repr__ = __repr__

        @rename("__rich_repr__")
        def __rich_repr__(self):
            for name in coalesce(type(self).__displayable__, type(self).__introspectable__):
                yield name, getattr(self, name)
        self.__rich_repr__ = __rich_repr__

        return self


def _sanitize_metadata(cls, metadata, /):
    """
    Internal: validate and normalize the declaration of an option.

    Responsibilities
    - name: non-empty kebab-style identifier (letters first, '-' separated segments).
    - type: one of TYPES.
    - allowed_values: iterable of strings without duplicates, stored as a tuple
      (a Set is accepted and sorted for a stable order). Only choices use it, but
      any type may carry it for help collaborators.
    - default: materialized when omitted (boolean → False, string → "",
      choice → first allowed value or None). `explicit_default` records whether
      the caller supplied it, which matters for required options.
    - callback: Unset or a callable; it will receive the option itself.
    - descr: Unset or a non-empty string (trimmed).

    Side effects
    - Mutates `metadata` in place.
    """
    if not isinstance(name := metadata["name"], str):
        raise TypeError(f"{cls.__typename__} 'name' must be a string")
    elif not (name := name.strip()):
        raise ValueError(f"{cls.__typename__} 'name' cannot be empty")
    elif not re.fullmatch(NAME_PATTERN, name):
        raise ValueError(f"{cls.__typename__} 'name' must be a valid kebab-case identifier, got {name!r}")
    metadata["name"] = name

    if metadata["type"] not in TYPES:
        raise ValueError(f"{cls.__typename__} 'type' must be one of {", ".join(map(repr, TYPES))}")

    if not isinstance(allowed := metadata["allowed_values"], Iterable) or isinstance(allowed, str):
        raise TypeError(f"{cls.__typename__} 'allowed_values' must be an iterable of strings")
    if isinstance(allowed, Set):
        allowed = sorted(allowed)
    sanitized = []
    for value in allowed:
        if not isinstance(value, str):
            raise TypeError(f"{cls.__typename__} 'allowed_values' must contain only strings")
        if value in sanitized:
            raise ValueError(f"{cls.__typename__} 'allowed_values' cannot contain duplicates")
        sanitized.append(value)
    metadata["allowed_values"] = tuple(sanitized)

    metadata["explicit_default"] = metadata["default"] is not Unset
    match metadata["type"]:
        case "boolean":
            metadata["default"] = coalesce(metadata["default"], False)
        case "string":
            metadata["default"] = coalesce(metadata["default"], "")
        case "choice":
            metadata["default"] = coalesce(metadata["default"], next(iter(metadata["allowed_values"]), None))

    if metadata["callback"] is not Unset and not callable(metadata["callback"]):
        raise TypeError(f"{cls.__typename__} 'callback' must be callable")

    if not isinstance(descr := metadata["descr"], str | Text | Unset):
        raise TypeError(f"{cls.__typename__} 'descr' must be a string")
    elif isinstance(descr, str) and not (descr := descr.strip()):
        raise ValueError(f"{cls.__typename__} 'descr' cannot be empty")
    metadata["descr"] = coalesce(descr)


class Option(metaclass=OptionType):
    """
    Immutable descriptor of one named option (`--name`).

    Fields are exposed as read-only properties (see __introspectable__).
    Calling the option fires its callback with the option as the only
    argument; options without a callback are a no-op when called.
    """

    __introspectable__ = (
        "name",
        "type",
        "default",
        "explicit_default",
        "allowed_values",
        "allow_negated",
        "required",
        "callback",
        "descr",
    )

    __displayable__ = (
        "name",
        "type",
        "default",
        "allowed_values",
        "allow_negated",
        "required",
    )

    def __init__(
            self,
            name,
            /,
            type="string",
            default=Unset,
            allowed_values=(),
            allow_negated=True,
            required=False,
            callback=Unset,
            descr=Unset,
    ):
        """
        Parameters
        - name: str, kebab-case; the flag is spelled `--<name>`.
        - type: "boolean" | "string" | "choice".
        - default: value used when the flag is absent (see _sanitize_metadata
          for the implicit defaults).
        - allowed_values: Iterable[str], the accepted values of a choice.
        - allow_negated: bool, whether a boolean also accepts `--no-<name>`.
        - required: bool, the parse fails when the option is neither given
          nor has an explicit default.
        - callback: Callable[[Option], Any], fired as soon as the flag is parsed.
        - descr: short description. The engine never reads it; it is kept
          for help renderers built on top of the parser (Option.descr).
        """
        metadata = {
            "name": name,
            "type": type,
            "default": default,
            "allowed_values": allowed_values,
            "allow_negated": bool(allow_negated),
            "required": bool(required),
            "callback": callback,
            "descr": descr,
        }
        _sanitize_metadata(builtins.type(self), metadata)

        for name, object in metadata.items():
            setattr(self, "_" + name, object)

    @property
    def negations(self):
        """
        Negated spellings accepted for this option (without the leading '--').
        """
        if self.type == "boolean" and self.allow_negated:
            return ("no-" + self.name,)
        return ()

    def __call__(self):
        if self._callback is Unset:
            return
        return self._callback(self)


def coerce_boolean(option, value=Unset, /, negated=False):
    """
    Coerce a boolean flag.

    - value Unset: the bare flag was given → True, or False when negated.
    - value str: an inline `--name=<value>` literal, matched case-insensitively
      against FALSY/TRUTHY.
    """
    if value is Unset:
        return not negated
    if (literal := value.lower()) in FALSY:
        return False
    if literal in TRUTHY:
        return True
    raise InvalidBooleanError(
        "Option '%s' received an invalid boolean value: '%s'" % (option.name, value),
        code=FaultCode.INVALID_BOOLEAN,
        title="invalid boolean value",
        hint="use one of %s (or %s)" % (", ".join(sorted(TRUTHY)), ", ".join(sorted(FALSY))),
        input=value,
        option=option,
    )


def coerce_string(option, value=Unset, /):
    """
    Coerce a string option; the empty string is a valid value, absence is not.
    """
    if value is Unset:
        raise MissingValueError(
            "Option '%s' requires a value" % option.name,
            code=FaultCode.MISSING_VALUE,
            title="missing value",
            hint="pass it after a space (--%s <value>) or inline (--%s=<value>)" % (option.name, option.name),
            option=option,
        )
    return value


def coerce_choice(option, value=Unset, /):
    """
    Coerce a choice option against its allowed values.

    A choice declared without allowed values can never be satisfied; that is
    reported before the token is even looked at.
    """
    if not option.allowed_values:
        raise InvalidChoiceError(
            "Choice '%s' does not allow any valid value" % option.name,
            code=FaultCode.NO_VALID_CHOICE,
            title="no valid choice",
            hint="declare 'allowed_values' for this option",
            option=option,
        )
    value = coerce_string(option, value)
    if value not in option.allowed_values:
        suggestions = difflib.get_close_matches(value, option.allowed_values, 1)
        raise InvalidChoiceError(
            "'%s' is not a valid value for '%s'. Allowed: %s" % (value, option.name, ", ".join(option.allowed_values)),
            code=FaultCode.INVALID_CHOICE,
            title="invalid choice",
            hint="did you mean %r?" % suggestions[0] if suggestions else "pick one of the allowed values",
            input=value,
            option=option,
            suggestions=suggestions,
        )
    return value


def coerce(option, value=Unset, /, negated=False):
    """
    Coerce a raw token (Unset when absent) according to `option.type`.
    """
    match option.type:
        case "boolean":
            return coerce_boolean(option, value, negated)
        case "string":
            return coerce_string(option, value)
        case "choice":
            return coerce_choice(option, value)
    raise RuntimeError("unexpected option type")


class OptionRegistry:
    """
    Ordered options of one scope plus their current values.

    State
    - options: name → Option, in registration order (the built-in `help` first).
      This order drives flatten() and missing().
    - values: name → current value; rebuilt from defaults by reset().
    - provided: names assigned during the current parse, in parse order.

    The registry is reset explicitly at the start of every parse, so a
    Parser or Command can be parsed repeatedly without values leaking.
    """

    def __init__(self, scope="root"):
        self._scope = scope
        self._options = {}
        self._values = {}
        self._provided = []
        self.add(Option("help", type="boolean", descr="show this help message and exit"))

    @property
    def options(self):
        return MappingProxyType(self._options)

    @property
    def provided(self):
        return tuple(self._provided)

    def __contains__(self, name):
        return name in self._options

    def __iter__(self):
        return iter(self._options.values())

    def __len__(self):
        return len(self._options)

    def add(self, option, /):
        if not isinstance(option, Option):
            raise TypeError("registry can only hold options")
        if self._options.setdefault(option.name, option) is not option:
            raise ValueError(f"option name {option.name!r} is already in use in {self._scope}")
        self._values[option.name] = option.default

    def resolve(self, name, /, *, inline=False):
        """
        Map a flag name (without the leading '--') to (option, negated).

        `no-<name>` resolves to a negatable boolean only, and only in bare form:
        an inline value on a negated spelling is not recognized.

        Raises
        - UnknownFlagError with close-match suggestions.
        """
        try:
            return self._options[name], False
        except KeyError:
            pass

        if name.startswith("no-") and not inline:
            option = self._options.get(name.removeprefix("no-"))
            if option is not None and name in option.negations:
                return option, True

        known = [spelling for option in self for spelling in (option.name, *option.negations)]
        suggestions = difflib.get_close_matches(name, known, 3)
        raise UnknownFlagError(
            "Unknown flag: --%s" % name,
            code=FaultCode.UNKNOWN_FLAG,
            title="unknown flag",
            hint="did you mean '--%s'?" % suggestions[0] if suggestions else "run with --help to see all options",
            input="--" + name,
            suggestions=suggestions,
            scope=self._scope,
        )

    def reset(self):
        self._values = {name: option.default for name, option in self._options.items()}
        self._provided.clear()

    def assign(self, option, value, /):
        """
        Store a parsed value and fire the option callback right away.
        """
        if option.name in self._provided:
            raise DuplicatedFlagError(
                "Option '%s' was already provided" % option.name,
                code=FaultCode.DUPLICATED_FLAG,
                title="duplicated flag",
                hint="keep a single --%s; each option can be given only once" % option.name,
                option=option,
            )
        self._values[option.name] = value
        self._provided.append(option.name)
        logger.debug("%s: --%s set to %r", self._scope, option.name, value)
        option()

    def value(self, name, /):
        try:
            return self._values[name]
        except KeyError:
            raise KeyError(f"unknown option {name!r} in {self._scope}") from None

    def missing(self):
        """
        Required options with neither a parsed value nor an explicit default.
        """
        return [
            option for option in self
            if option.required and not option.explicit_default and option.name not in self._provided
        ]

    def flatten(self, *, camelize=False, include_help=False):
        """
        Snapshot of the current values as a plain dict, in registration order.
        """
        transform = utils.camelize if camelize else str
        return {
            transform(name): value
            for name, value in self._values.items()
            if include_help or name != "help"
        }


def build_option(source, /):
    """
    Accept an Option or a mapping of Option fields ({"name": ..., "type": ...}).
    """
    if isinstance(source, Option):
        return source
    if isinstance(source, Mapping):
        fields = dict(source)
        try:
            name = fields.pop("name")
        except KeyError:
            raise TypeError("option mapping must define a 'name'") from None
        return Option(name, **fields)
    raise TypeError("option must be an Option or a mapping of option fields")


__all__ = (
    "Option",
    "OptionRegistry",
    "coerce",
    "coerce_boolean",
    "coerce_string",
    "coerce_choice",
    "build_option",
)

# Keep the metaclass out of star-imports and docs.
del OptionType
