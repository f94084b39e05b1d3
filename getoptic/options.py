r"""
Getoptic option specifications and the option table.

Overview
- OptionKind: tagged variant of what an option does when it fires.
  • FLAG: stores a constant (True by default) into its destination.
  • VALUE: consumes exactly one following token (or an inline '=value').
  • TERMINAL: ends the parse immediately (help/version and friends).

- OptionSpec: immutable description of one option (its spellings, kind,
  destination, constant, default, choices, terminal action).

- Factories
  • flag(...), valued(...): build an OptionSpec of the matching kind.
  • terminal(...): build a TERMINAL spec, or act as a decorator binding the
    decorated function as the terminal action.

- OptionTable: the static mapping from every spelling to its spec, built once
  per program. It also derives the bundle alphabet: the set of ASCII letters
  whose single-dash spelling ('-x') may appear inside a bundled token ('-xyz').

Validation highlights
- Spellings must match r"--?[^\W\d_](-?[^\W_]+)*" and be unique, both within a
  spec and across a whole table.
- choices are only meaningful for VALUE options, const only for FLAG options,
  action only for TERMINAL options.

Quick example:
    >>> from getoptic.options import OptionTable, flag, valued, terminal
    >>> table = OptionTable([
    ...     flag("-v", "--verbose"),
    ...     flag("-q", "--quiet", dest="verbose", const=False),
    ...     valued("-o", "--output", metavar="FILE"),
    ...     terminal("-V", "--version", action=print),
    ... ])
    >>> sorted(table.alphabet)
    ['V', 'o', 'q', 'v']
"""
import functools
import re
from collections.abc import Iterable, Mapping, Set
from enum import Enum
from types import MappingProxyType

from rich.text import Text

from .utils import *


class OptionKind(Enum):
    """what an option does when the parse loop dispatches it."""
    FLAG = "flag"
    VALUE = "value"
    TERMINAL = "terminal"


def _sanitize_spellings(spellings, /):
    """
    Internal: validate option spellings and keep their declaration order.

    Accepted forms
    - short: "-x" (bundle-eligible)
    - long with single hyphen: "-long", "-long-name"
    - long with double hyphen: "--long", "--long-name"

    Raises
    - TypeError: no spellings, or a non-string spelling.
    - ValueError: an empty, malformed, or duplicated spelling.
    """
    if not spellings:
        raise TypeError("option must specify at least one spelling")

    seen = []
    for spelling in spellings:
        if not isinstance(spelling, str):
            raise TypeError("option spellings must be strings")
        elif not (spelling := spelling.strip()):
            raise ValueError("option spellings cannot be empty-strings")
        elif not re.fullmatch(r"--?[^\W\d_](-?[^\W_]+)*", spelling):
            raise ValueError("option spelling %r is not a valid shell-style option name" % spelling)
        elif spelling in seen:
            raise ValueError("option spellings cannot contain duplicates")
        seen.append(spelling)
    return tuple(seen)


def _derive_dest(spellings, /):
    # first '--long' spelling wins, otherwise the first spelling as written
    for spelling in spellings:
        if spelling.startswith("--"):
            return spelling[2:].replace("-", "_")
    return spellings[0].lstrip("-").replace("-", "_")


class OptionSpec:
    """
    Immutable description of a single option.

    Fields (read-only properties)
    - spellings: tuple[str, ...] in declaration order, e.g. ("-v", "--verbose").
    - kind: OptionKind.
    - dest: key written in the parse result's flags map. Several specs may share
      one destination (e.g. -v and -q both write 'verbose').
    - const: value stored by a FLAG when it fires (True by default).
    - default: value seeded when the option never fires; Unset means "absent".
    - choices: tuple of accepted values for a VALUE option (Unset = anything).
    - metavar: label for the value of a VALUE option (display only).
    - action: callable run by Parser.invoke() when a TERMINAL option fires.
    - descr: short help text (display only).
    """
    __introspectable__ = (
        "spellings",
        "kind",
        "dest",
        "const",
        "default",
        "choices",
        "metavar",
        "action",
        "descr",
    )
    __slots__ = tuple("_" + name for name in __introspectable__)

    def __init__(
            self,
            *spellings,
            kind=OptionKind.FLAG,
            dest=Unset,
            const=Unset,
            default=Unset,
            choices=Unset,
            metavar=Unset,
            action=Unset,
            descr=Unset,
    ):
        if not isinstance(kind, OptionKind):
            raise TypeError("option 'kind' must be an OptionKind")
        spellings = _sanitize_spellings(spellings)

        if not isinstance(dest, str | Unset):
            raise TypeError("option 'dest' must be a string")
        elif isinstance(dest, str) and not (dest := dest.strip()):
            raise ValueError("option 'dest' cannot be empty")

        if const is not Unset and kind is not OptionKind.FLAG:
            raise TypeError("only flag options accept a 'const'")

        if choices is not Unset:
            if kind is not OptionKind.VALUE:
                raise TypeError("only value options accept 'choices'")
            if not isinstance(choices, Iterable) or isinstance(choices, str):
                raise TypeError("option 'choices' must be a non-string iterable")
            if not isinstance(choices, Set) and len(set(choices := tuple(choices))) != len(choices):
                raise ValueError("option 'choices' cannot contain duplicates")
            choices = tuple(choices)
            if not choices:
                raise ValueError("option 'choices' cannot be empty")

        if metavar is not Unset:
            if kind is not OptionKind.VALUE:
                raise TypeError("only value options accept a 'metavar'")
            if not isinstance(metavar, str) or not metavar.strip():
                raise ValueError("option 'metavar' must be a non-empty string")

        if action is not Unset:
            if kind is not OptionKind.TERMINAL:
                raise TypeError("only terminal options accept an 'action'")
            if not callable(action):
                raise TypeError("option 'action' must be callable")

        if not isinstance(descr, str | Text | Unset):
            raise TypeError("option 'descr' must be a string")

        dest = coalesce(dest, _derive_dest(spellings))

        self._kind = kind
        self._dest = dest
        self._const = coalesce(const, True) if kind is OptionKind.FLAG else Unset
        self._default = default
        self._choices = choices
        self._metavar = coalesce(metavar, dest.upper()) if kind is OptionKind.VALUE else Unset
        self._action = action
        self._descr = coalesce(descr)
        # assigned last: its presence seals the instance (see __setattr__)
        self._spellings = spellings

    spellings = mirror("spellings")
    kind = mirror("kind")
    dest = mirror("dest")
    const = mirror("const")
    default = mirror("default")
    choices = mirror("choices")
    metavar = mirror("metavar")
    action = mirror("action")
    descr = mirror("descr")

    @property
    def takes_value(self):
        return self._kind is OptionKind.VALUE

    @property
    def chars(self):
        """characters of the short ('-x') spellings eligible for bundling (ASCII letters only)."""
        return tuple(
            spelling[1] for spelling in self._spellings
            if len(spelling) == 2 and spelling[1].isascii()
        )

    @property
    def char(self):
        """the first bundle-eligible character, or None for long-only options."""
        return next(iter(self.chars), None)

    def __setattr__(self, name, value):
        if hasattr(self, "_spellings"):
            raise AttributeError("%s is immutable" % type(self).__name__)
        super().__setattr__(name, value)

    def __rich_repr__(self):
        for name in type(self).__introspectable__:
            if (value := getattr(self, name)) is not Unset and value is not None:
                yield name, value

    def __repr__(self):
        return "%s(%s)" % (self._kind.value, ", ".join("%s=%r" % pair for pair in self.__rich_repr__()))


def flag(*spellings, dest=Unset, const=Unset, default=Unset, descr=Unset):
    """build a FLAG spec: stores const (True) into dest when it fires."""
    return OptionSpec(*spellings, kind=OptionKind.FLAG, dest=dest, const=const, default=default, descr=descr)


def valued(*spellings, dest=Unset, default=Unset, choices=Unset, metavar=Unset, descr=Unset):
    """build a VALUE spec: consumes the next token (or '=value') into dest."""
    return OptionSpec(
        *spellings,
        kind=OptionKind.VALUE,
        dest=dest,
        default=default,
        choices=choices,
        metavar=metavar,
        descr=descr,
    )


def terminal(*spellings, action=Unset, descr=Unset):
    """
    build a TERMINAL spec, or return a decorator that binds its action.

    Forms
    - terminal("-V", "--version", action=show_version) -> OptionSpec
    - @terminal("-h", "--help")
      def show_help(): ...                              -> OptionSpec
    """
    if action is not Unset:
        return OptionSpec(*spellings, kind=OptionKind.TERMINAL, action=action, descr=descr)

    # validate eagerly so a bad spelling fails at the decoration site
    _sanitize_spellings(spellings)

    @rename("terminal")
    def wrapper(callback, /):
        if not callable(callback):
            raise TypeError("@terminal() must be applied to a callable")
        return OptionSpec(*spellings, kind=OptionKind.TERMINAL, action=callback, descr=descr)

    return wrapper


class OptionTable(Mapping):
    """
    Static mapping from option spellings to their OptionSpec.

    Built once per program and never re-parsed per token. Besides lookups it
    exposes:
    - specs: the specs in declaration order.
    - alphabet: frozenset of bundle-eligible characters (every '-x' spelling
      whose x is an ASCII letter; '-é' still parses, but only on its own).
    - charclass: the alphabet rendered as a character class, e.g. '[Vnqv]'.
    - defaults(): dest → default for every spec that declares one.
    """

    def __init__(self, specs=(), /):
        if isinstance(specs, OptionTable):
            specs = specs.specs
        if not isinstance(specs, Iterable):
            raise TypeError("OptionTable() argument must be an iterable of option specs")

        spellings = {}
        for spec in (specs := tuple(specs)):
            if not isinstance(spec, OptionSpec):
                raise TypeError("OptionTable() items must be option specs, not %s" % type(spec).__name__)
            for spelling in spec.spellings:
                if spellings.setdefault(spelling, spec) is not spec:
                    raise ValueError("option spelling %r is already in use" % spelling)

        self._specs = specs
        self._spellings = MappingProxyType(spellings)
        self._alphabet = frozenset(char for spec in specs for char in spec.chars)

    specs = mirror("specs")

    @property
    def alphabet(self):
        return self._alphabet

    @functools.cached_property
    def charclass(self):
        return "[%s]" % "".join(sorted(self._alphabet))

    def short(self, char, /):
        """return the spec spelled '-<char>' (KeyError when there is none)."""
        return self._spellings["-" + char]

    def defaults(self):
        defaults = {}
        for spec in self._specs:
            if spec.default is not Unset:
                defaults.setdefault(spec.dest, spec.default)
        return defaults

    def __getitem__(self, spelling, /):
        return self._spellings[spelling]

    def __iter__(self):
        return iter(self._spellings)

    def __len__(self):
        return len(self._spellings)

    def __repr__(self):
        return "%s(%r)" % (type(self).__name__, list(self._specs))


__all__ = (
    "OptionKind",
    "OptionSpec",
    "OptionTable",
    "flag",
    "valued",
    "terminal",
)
