"""
cmdparser utilities (small helpers shared by the option and command layers)

Overview
- UnsetType / Unset
  • Sentinel meaning "the caller did not provide this", kept apart from None so
    that None, "" and False stay legitimate option defaults.

- coalesce(value, default=None)
  • Materialize Unset into a concrete fallback; every other value passes through.

- rename(callable, name) / @rename("name")
  • Give generated accessors a readable __name__/__qualname__.

- mirror("attr")
  • Read-only property over self._attr; containers are handed out as fresh copies
    so parse results cannot be edited behind the engine's back.

- pluralize(noun, count)
  • Singular or plural noun for counts in fault messages ("1 argument", "2 arguments").

- camelize(text)
  • Kebab/snake to camelCase, used by the flattened option views ("log-level" → "logLevel").

Quick examples
    >>> coalesce(Unset, "fallback")
    'fallback'
    >>> coalesce("", "fallback")
    ''
    >>> camelize("log-level")
    'logLevel'
"""
import builtins
import functools
import re
from collections.abc import Sequence, Mapping, Set
from typing import final


@final
class UnsetType:
    """
    Sentinel type for "value not provided".

    Characteristics
    - Falsey, but never equal to None, 0 or "".
    - repr() is "Unset".
    - One instance per process; the type cannot be subclassed.
    """

    def __or__(self, other, /):
        """
        Allow PEP 604 unions such as `str | Unset` in isinstance checks.
        """
        try:
            return other | type(self)
        except TypeError:
            return NotImplemented

    def __ror__(self, other, /):
        try:
            return other | type(self)
        except TypeError:
            return NotImplemented

    @functools.cache
    def __new__(cls):
        return super().__new__(cls)

    def __bool__(self):
        return False

    def __repr__(self):
        return "Unset"

    def __init_subclass__(cls, **options):
        raise TypeError("type 'UnsetType' is not an acceptable base type")


def coalesce(object, default=None, /):
    """
    Return `object` unless it is Unset, in which case return `default`.

    Falsey values ("", 0, False, None, []) are real values and are preserved.

    Examples
    - coalesce("name", "x") -> "name"
    - coalesce(Unset, "x")  -> "x"
    - coalesce(False, True) -> False
    """
    return object if object is not Unset else default


def rename(*parameters):
    """
    Set __name__/__qualname__ on a callable, or build a decorator that does it.

    Forms
    - rename(callable, name) -> callable (renamed in place)
    - rename(name)           -> decorator

    Raises
    - TypeError: on a non-callable target, a non-string name, a callable that
      refuses attribute updates, or a wrong number of arguments.
    """
    match len(parameters):
        case 2:
            callable, name = parameters
            if not builtins.callable(callable):
                raise TypeError("rename() first argument must be callable")
            if not isinstance(name, str):
                raise TypeError("rename() second argument must be a string")
            try:
                callable.__qualname__ = name
                callable.__name__ = name
            except (AttributeError, TypeError):
                raise TypeError("rename() first argument must be a updatable callable") from None
            return callable
        case 1:
            name, = parameters
            if not isinstance(name, str):
                raise TypeError("@rename() argument must be a string")

            def wrapper(callable):
                if not builtins.callable(callable):
                    raise TypeError("@rename() must be applied to a callable")
                return rename(callable, name)

            return rename(wrapper, "rename")
        case _:
            raise TypeError("rename takes 1 to 2 arguments but %d were given" % len(parameters))


def _detach(object):
    """
    Copy containers recursively so the caller gets its own instance.

    - str is returned as-is (it is a Sequence, but immutable).
    - tuple stays a tuple; any other Sequence becomes a list.
    - Mapping becomes a dict, Set becomes a set; keys are kept, values are detached.
    - Unset is materialized to None.
    """
    if isinstance(object, str):
        return object
    elif isinstance(object, tuple):
        return tuple(map(_detach, object))
    elif isinstance(object, Sequence):
        return list(map(_detach, object))
    elif isinstance(object, Mapping):
        return dict(zip(object.keys(), map(_detach, object.values())))
    elif isinstance(object, Set):
        return set(map(_detach, object))
    return coalesce(object)


def mirror(name, /):
    """
    Build a read-only property over the private field "_{name}".

    Example
    - self._extra_args backs `extra_args = mirror("extra_args")`; reading
      `scope.extra_args` returns a copy of the list.
    """
    if not isinstance(name, str):
        raise TypeError("mirror() argument must be a string")

    @rename(name)
    def getter(self):
        return _detach(getattr(self, "_" + name))

    return property(getter)


def pluralize(noun, count, /):
    """
    Pick the singular or the plural ('s' suffix) of `noun` for `count` items.

    Examples
    - pluralize("argument", 1) -> "argument"
    - pluralize("argument", 0) -> "arguments"
    - pluralize("option", 2)   -> "options"
    """
    if not isinstance(noun, str):
        raise TypeError("pluralize() first argument must be a string")
    return noun if count == 1 else noun + "s"


@functools.cache
def camelize(text, /):
    """
    Convert a kebab-case (or snake_case) identifier to camelCase.

    Separators are runs of '-', '_' or whitespace; the character following a
    separator is upper-cased and the separator dropped. The first character is
    left untouched, so already camel-cased or single-word names are stable.

    Examples
    - camelize("log-level") -> "logLevel"
    - camelize("option1")   -> "option1"
    - camelize("dry_run")   -> "dryRun"
    - camelize("a-b-c")     -> "aBC"
    """
    if not isinstance(text, str):
        raise TypeError("camelize() argument must be a string")
    return re.sub(r"(?<=\w)[-_\s]+(\w)", lambda match: match.group(1).upper(), text)


Unset = UnsetType()
"""
Singleton "not provided" marker. Falsey, distinct from None; resolve it with coalesce().
"""


__all__ = (
    # Functions
    "coalesce",
    "rename",
    "mirror",
    "pluralize",
    "camelize",

    # Types
    "UnsetType",

    # Constants
    "Unset",
)
