"""
Getoptic parse loop: getopt-style, single pass, fail fast.

What this module provides
- Parser: walks an argv-like token list left to right against an OptionTable
  and returns a ParseResult (flags map + positionals), or raises the first
  ParseError it meets. It performs no I/O of its own; in shell mode faults are
  printed and the process exits through faults.trigger().
- parse(tokens, table, **options): one-shot convenience over Parser.
- noarg(): guard run before a value-taking option consumes its value.
- is_option_shaped(): tells malformed options apart from positionals.

Token classification (state SCANNING; in CONSUMING_VALUE the next token is
the pending option's value, whatever its shape)
- '--'                       → enter POSITIONAL; everything after is positional.
- '-' or no leading dash     → positional.
- a registered spelling      → dispatch (FLAG stores const, VALUE enters
                               CONSUMING_VALUE, TERMINAL ends the parse).
- '--name=value'             → dispatch '--name' with an inline value.
- a bundle ('-vnq')          → disaggregated; members are pushed back onto the
                               front of the queue and scanned as usual.
- anything else with a dash  → InvalidOptionError (22).

Positional arity uses the nargs vocabulary: Unset (any count), an int (exactly
n), '?', '*', '+'. A surplus positional is a UsageError (2) at the moment it is
seen; a shortfall is a UsageError once the tokens run out.

Quick start
    from getoptic import Parser, OptionTable, flag, valued

    parser = Parser(OptionTable([flag("-v"), flag("-n"), valued("-o")]), nargs="*")
    result = parser.parse(["-vn", "file.txt"])
    result.flags        # {'v': True, 'n': True}
    result.positionals  # ('file.txt',)
"""
import copy
import logging
import sys
from collections import deque
from collections.abc import Iterable
from dataclasses import dataclass, field
from enum import Enum
from types import MappingProxyType

from . import disaggregation
from .faults import *
from .options import OptionKind, OptionSpec, OptionTable
from .utils import Unset, UnsetType, coalesce

log = logging.getLogger(__name__)


class State(Enum):
    SCANNING = "scanning"
    CONSUMING_VALUE = "consuming-value"
    POSITIONAL = "positional-only"
    DONE = "done"


@dataclass
class ParseState:
    """mutable state owned by a single parse call; never shared."""
    remaining: deque
    positionals: list = field(default_factory=list)
    flags: dict = field(default_factory=dict)
    errors: list = field(default_factory=list)
    state: State = State.SCANNING
    terminal: OptionSpec | None = None
    # (spelling, spec) of the VALUE option waiting for its value
    pending: tuple | None = None


@dataclass(frozen=True)
class ParseResult:
    """
    outcome of a successful parse.

    - flags: read-only mapping dest → value (True/const for flags, str for values).
    - positionals: tuple of positional tokens in input order.
    - terminal: the TERMINAL spec that ended the parse, or None.
    """
    flags: MappingProxyType
    positionals: tuple
    terminal: OptionSpec | None = None

    @property
    def code(self):
        return ExitCode.SUCCESS

    def __getitem__(self, dest):
        return self.flags[dest]

    def get(self, dest, default=None):
        return self.flags.get(dest, default)


def is_option_shaped(token, table=(), /):
    """
    True for a single-dash token with at least one character after the dash
    that is not itself a registered long spelling ('-long').
    """
    if len(token) < 2 or token[0] != "-" or token[1] == "-":
        return False
    return not (len(token) > 2 and token in table)


def noarg(token, tokens, /):
    """
    ensure the value-taking option token has a value waiting in tokens.

    fails with MissingArgumentError when there is no next token, or when the
    next token looks like an option (a leading '-' other than a lone '-').
    """
    if not tokens or (tokens[0].startswith("-") and tokens[0] != "-"):
        raise MissingArgumentError(
            "option %r requires an argument" % token,
            token=token,
        )


def _arity(nargs, /):
    # nargs → (minimum, maximum); maximum None means unbounded
    match nargs:
        case UnsetType():
            return 0, None
        case "?":
            return 0, 1
        case "*":
            return 0, None
        case "+":
            return 1, None
        case bool():
            raise TypeError("parser 'nargs' must be a string or an integer")
        case int() if nargs >= 0:
            return nargs, nargs
        case int():
            raise ValueError("parser 'nargs' must be a non-negative integer")
        case str():
            raise ValueError("parser 'nargs' must be one of '?', '+', or '*'")
    raise TypeError("parser 'nargs' must be a string or an integer")


class Parser:
    """
    Configured argument parser for one program.

    Parameters
    - table: OptionTable (or an iterable of OptionSpec, wrapped into one).
    - nargs: positional arity (Unset, int, '?', '*', '+'); default Unset (any).
    - strategy: disaggregation strategy name or Strategy; default in-process.
    - external: feature flag allowing the subprocess strategies.
    - shell: print faults to stderr and exit with their code instead of raising.
    - colorful/fancy: fault rendering switches (colors, panel chrome).
    - prog: program name shown in fault headers and hints.
    """

    def __init__(
            self,
            table,
            /,
            *,
            nargs=Unset,
            strategy=Unset,
            external=False,
            shell=False,
            colorful=True,
            fancy=False,
            prog=Unset,
    ):
        if not isinstance(table, OptionTable):
            if not isinstance(table, Iterable):
                raise TypeError("Parser() argument must be an option table")
            table = OptionTable(table)
        if not isinstance(prog, str | Unset):
            raise TypeError("parser 'prog' must be a string")

        self._table = table
        self._nargs = nargs
        self._arity = _arity(nargs)
        self._strategy = disaggregation.resolve(strategy, external=external)
        self.shell = bool(shell)
        self.colorful = bool(colorful)
        self.fancy = bool(fancy)
        self.prog = coalesce(prog, None)

    @property
    def table(self):
        return self._table

    @property
    def nargs(self):
        return self._nargs

    @property
    def strategy(self):
        return self._strategy

    def trigger(self, fault, state=None, /):
        """surface fault with this parser's rendering options (raises or exits)."""
        fault = copy.replace(
            fault,
            shell=self.shell,
            colorful=self.colorful,
            fancy=self.fancy,
            prog=self.prog,
            hint=fault.options.get("hint") or self._hint(fault),
        )
        if state is not None:
            state.errors.append(fault)
            state.state = State.DONE
        fault.__trigger__()

    def _hint(self, fault):
        if "--help" not in self._table:
            return None
        if isinstance(fault, UsageError):
            return "run '%s --help' to see the expected usage" % (self.prog or "command")
        return "run '%s --help' to see valid options" % (self.prog or "command")

    def parse(self, tokens, /):
        """
        parse tokens into a ParseResult; the first error is fatal.

        raises ParseError (UsageError, InvalidOptionError, MissingArgumentError,
        GeneralFailure) unless the parser runs in shell mode, where the fault is
        printed and the process exits with the fault's code.
        """
        if isinstance(tokens, str) or not isinstance(tokens, Iterable):
            raise TypeError("parse() argument must be an iterable of strings")
        tokens = list(tokens)
        if not all(isinstance(token, str) for token in tokens):
            raise TypeError("parse() argument must be an iterable of strings")

        state = ParseState(deque(tokens))
        try:
            self._scan(state)
            if state.terminal is None:
                self._check_arity(state)
        except ParseError as fault:
            self.trigger(fault, state)

        state.state = State.DONE
        flags = self._table.defaults() | state.flags
        return ParseResult(MappingProxyType(flags), tuple(state.positionals), state.terminal)

    def _scan(self, state):
        while state.remaining:
            token = state.remaining.popleft()

            if state.state is State.CONSUMING_VALUE:
                self._store(state, *state.pending, token)
                continue

            if state.state is State.POSITIONAL:
                self._positional(state, token)
                continue

            if token == "--":
                log.debug("%r: positional-only from here on", token)
                state.state = State.POSITIONAL
                continue

            if token == "-" or not token.startswith("-"):
                self._positional(state, token)
                continue

            if token.startswith("--") and "=" in token:
                spelling, _, inline = token.partition("=")
            else:
                spelling, inline = token, None

            if spelling in self._table:
                self._dispatch(state, spelling, self._table[spelling], inline)
                if state.state is State.DONE:
                    return
                continue

            if disaggregation.is_bundle(token, self._table.alphabet):
                self._validate_bundle(token)
                members = self._strategy(token)
                log.debug("%r: bundle of %s via %s → %r", token, self._table.charclass, self._strategy.name, members)
                state.remaining.extendleft(reversed(members))
                continue

            if is_option_shaped(token, self._table) and len(token) > 2:
                unknown = next(char for char in token[1:] if char not in self._table.alphabet)
                if "-" + unknown in self._table:
                    message = "invalid option %r ('-%s' cannot be bundled)" % (token, unknown)
                else:
                    message = "invalid option %r ('-%s' is not a known option)" % (token, unknown)
            else:
                message = "invalid option %r" % token
            raise InvalidOptionError(message, token=token)

    def _validate_bundle(self, token):
        # value-taking members are only unambiguous in the last position
        for char in token[1:-1]:
            if self._table.short(char).takes_value:
                raise InvalidOptionError(
                    "invalid option %r: '-%s' takes a value and must end the bundle" % (token, char),
                    token=token,
                )

    def _dispatch(self, state, spelling, spec, inline):
        log.debug("%r: %s option → %r", spelling, spec.kind.value, spec.dest)

        match spec.kind:
            case OptionKind.FLAG:
                if inline is not None:
                    raise InvalidOptionError("option %r does not take a value" % spelling, token=spelling)
                state.flags[spec.dest] = spec.const

            case OptionKind.TERMINAL:
                if inline is not None:
                    raise InvalidOptionError("option %r does not take a value" % spelling, token=spelling)
                state.terminal = spec
                state.state = State.DONE

            case OptionKind.VALUE:
                if inline is not None:
                    if not inline:
                        raise MissingArgumentError("option %r requires an argument" % spelling, token=spelling)
                    self._store(state, spelling, spec, inline)
                else:
                    # the value is read by the next _scan iteration
                    noarg(spelling, state.remaining)
                    state.pending = (spelling, spec)
                    state.state = State.CONSUMING_VALUE

    def _store(self, state, spelling, spec, value):
        if spec.choices is not Unset and value not in spec.choices:
            raise InvalidOptionError(
                "invalid value %r for option %r (must be one of %s)" % (
                    value, spelling, ", ".join(map(repr, spec.choices))
                ),
                token=value,
            )
        state.flags[spec.dest] = value
        state.pending = None
        state.state = State.SCANNING

    def _positional(self, state, token):
        minimum, maximum = self._arity
        if maximum is not None and len(state.positionals) >= maximum:
            raise UsageError("unexpected argument %r" % token, token=token)
        state.positionals.append(token)

    def _check_arity(self, state):
        minimum, maximum = self._arity
        if len(state.positionals) < minimum:
            raise UsageError(
                "expected %s%d positional argument%s, got %d" % (
                    "" if minimum == maximum else "at least ",
                    minimum,
                    "" if minimum == 1 else "s",
                    len(state.positionals),
                )
            )

    def invoke(self, tokens=Unset, /):
        """
        run the parser the way a script's main() would.

        - tokens default to sys.argv[1:].
        - faults are printed to stderr and the process exits with their code.
        - a TERMINAL option runs its action, then the process exits with 0.
        - otherwise the ParseResult is returned.
        """
        tokens = sys.argv[1:] if tokens is Unset else tokens
        shell, self.shell = self.shell, True
        try:
            result = self.parse(tokens)
        finally:
            self.shell = shell

        if result.terminal is not None:
            if result.terminal.action is not Unset:
                result.terminal.action()
            sys.exit(int(ExitCode.SUCCESS))
        return result

    def __repr__(self):
        return "Parser(%r, nargs=%r, strategy=%r)" % (self._table, self._nargs, self._strategy.name)


def parse(tokens, table, /, **options):
    """one-shot parse: Parser(table, **options).parse(tokens)."""
    return Parser(table, **options).parse(tokens)


__all__ = (
    "State",
    "ParseState",
    "ParseResult",
    "Parser",
    "parse",
    "noarg",
    "is_option_shaped",
)
