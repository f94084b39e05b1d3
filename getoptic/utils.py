"""
Getoptic utilities (internal helpers, carefully exposed)

Overview
- UnsetType / Unset
  • "argument not given" marker, kept apart from None because None is a
    legitimate option default.
  • One instance per process; falsy; prints as "Unset"; cannot be subclassed.

- coalesce(value, fallback=None)
  • Swap Unset for a fallback; every other value (None, 0, "") is kept.

- rename(name, callable=None)
  • Give a generated callable (strategy wrapper, terminal decorator, mirrored
    getter) a readable __name__/__qualname__. Without a callable it returns a
    decorator.

- mirror("attr")
  • Read-only property over the private slot "_attr"; containers come back as
    fresh copies so a sealed OptionSpec cannot be mutated from outside.

Quick examples
    >>> coalesce(Unset, "-")
    '-'
    >>> coalesce(None, "-") is None
    True
"""
import builtins
from collections.abc import Mapping, Sequence, Set
from typing import final

_instance = None


@final
class UnsetType:
    """
    Type of the Unset marker.

    Only ever instantiated once; calling UnsetType() again hands back the same
    object, so identity checks (`value is Unset`) are always safe.
    """

    def __new__(cls):
        global _instance
        if _instance is None:
            _instance = super().__new__(cls)
        return _instance

    def __init_subclass__(cls, **options):
        raise TypeError("UnsetType cannot be subclassed")

    # `str | Unset` reads better at call sites than `str | UnsetType`
    def __or__(self, other, /):
        try:
            return UnsetType | other
        except TypeError:
            return NotImplemented

    def __ror__(self, other, /):
        try:
            return other | UnsetType
        except TypeError:
            return NotImplemented

    def __bool__(self):
        return False

    def __repr__(self):
        return "Unset"

    def __reduce__(self):
        return "Unset"


def coalesce(value, fallback=None, /):
    """
    value, unless it is Unset; then fallback.

    Only the marker is replaced: None, 0, "" and empty containers pass through.
    """
    if value is Unset:
        return fallback
    return value


def rename(name, callable=None, /):
    """
    Set __name__ and __qualname__ of callable to name and return it.

    Called with the name alone, returns a decorator doing the same.
    """
    if not isinstance(name, str):
        raise TypeError("rename() name must be a string")
    if callable is None:
        def decorator(callable, /):
            return rename(name, callable)
        decorator.__name__ = decorator.__qualname__ = "rename"
        return decorator

    if not builtins.callable(callable):
        raise TypeError("rename() can only rename callables")
    try:
        callable.__name__ = name
        callable.__qualname__ = name
    except (AttributeError, TypeError):
        raise TypeError("cannot rename %r" % callable) from None
    return callable


def _materialize(value):
    # fresh containers all the way down; strings and scalars are returned as-is
    match value:
        case str():
            return value
        case tuple():
            return tuple(_materialize(item) for item in value)
        case Sequence():
            return [_materialize(item) for item in value]
        case Mapping():
            return {key: _materialize(item) for key, item in value.items()}
        case Set():
            return frozenset(_materialize(item) for item in value)
    return value


def mirror(name, /):
    """
    Property reading the backing slot "_<name>".

    There is no setter; containers are copied on every read (sets are
    frozen), so the public surface of a spec is read-only all the way down.
    """
    if not isinstance(name, str):
        raise TypeError("mirror() expects an attribute name")
    slot = "_" + name

    @rename(name)
    def getter(self):
        return _materialize(getattr(self, slot))

    return property(getter, doc="read-only view of %s" % slot)


Unset = UnsetType()


__all__ = (
    # Functions
    "coalesce",
    "rename",
    "mirror",

    # Types
    "UnsetType",

    # Constants
    "Unset",
)
