"""
Getoptic disaggregation: expanding bundled short options.

A bundled token such as '-vnq' is shorthand for '-v -n -q'. Disaggregation
rewrites the bundle into its individual single-dash tokens, in order:

    >>> disaggregate("-vnq", {"v", "n", "q"})
    ['-v', '-n', '-q']

Strategies (behaviorally identical, different mechanics)
- linesplit ("External-line-split"): pipes the members through `grep -o .`,
  which prints one character per line, then prefixes every line with '-'.
- widthwrap ("External-fixed-width"): the same round trip through `fold -w1`.
- charwalk ("In-process"): walks the member string in Python, peeling one
  character at a time. No subprocess; this is the default everywhere.

The two external strategies exist to be measured against the in-process one
(see getoptic.benchmark). They sit behind the `external` feature flag:
resolve()/disaggregate() refuse them unless external=True is passed.

Errors
- Strategies assume a validated bundle. disaggregate() checks the shape and
  raises ValueError for anything else, so nothing is ever partially expanded.
- Bundle members are ASCII letters only: `fold -w1` wraps bytes, so a
  multi-byte member would come back split. Any other undecodable tool output,
  like a missing or failing tool, raises GeneralFailure (exit code 1).
"""
import logging
import os
import subprocess

from .faults import GeneralFailure
from .utils import Unset, rename

log = logging.getLogger(__name__)


class Strategy:
    """
    A named disaggregation strategy.

    Calling a strategy with a bundle token returns the list of single-dash
    tokens. `external` tells whether it spawns a process, `tool` names it.
    """
    __slots__ = ("name", "external", "tool", "_function")

    def __init__(self, name, function, /, *, external=False, tool=None):
        if not isinstance(name, str) or not name.strip():
            raise ValueError("strategy name must be a non-empty string")
        if not callable(function):
            raise TypeError("strategy function must be callable")
        if external and not tool:
            raise ValueError("external strategies must name their tool")
        self.name = name
        self.external = external
        self.tool = tool
        self._function = function

    def __call__(self, token, /):
        return self._function(token)

    def __repr__(self):
        return "Strategy(%r, external=%r)" % (self.name, self.external)


def strategy(name, /, *, external=False, tool=None):
    """decorator: wrap a token → tokens function into a Strategy."""
    @rename("strategy")
    def wrapper(function, /):
        return Strategy(name, function, external=external, tool=tool)
    return wrapper


def _member(char, alphabet):
    # bundle members are single ASCII letters; the external filters split bytes
    return char.isascii() and char.isalpha() and char in alphabet


def _filter(command, token):
    # one member per output line; here-string semantics (trailing newline)
    log.debug("spawning %r to split %r", command[0], token)
    try:
        process = subprocess.run(
            command,
            input=token[1:] + "\n",
            capture_output=True,
            text=True,
            check=True,
            env=os.environ | {"LC_ALL": "C.UTF-8"},
        )
    except FileNotFoundError:
        raise GeneralFailure(
            "external tool %r is not available to split %r" % (command[0], token),
            token=token,
            hint="install %r or use the in-process strategy" % command[0],
        ) from None
    except subprocess.CalledProcessError as error:
        stderr = " ".join((error.stderr or "").split())
        raise GeneralFailure(
            "external tool %r failed with status %d while splitting %r" % (command[0], error.returncode, token),
            token=token,
            hint=stderr[:200] or None,
        ) from None
    except UnicodeDecodeError:
        raise GeneralFailure(
            "external tool %r split %r inside a multi-byte character" % (command[0], token),
            token=token,
        ) from None
    return ["-" + line for line in process.stdout.splitlines() if line]


@strategy("External-line-split", external=True, tool="grep")
def linesplit(token, /):
    return _filter(["grep", "-o", "."], token)


@strategy("External-fixed-width", external=True, tool="fold")
def widthwrap(token, /):
    return _filter(["fold", "-w1"], token)


@strategy("In-process")
def charwalk(token, /):
    output = []
    remaining = token[1:]
    while remaining:
        output.append("-" + remaining[0])
        remaining = remaining[1:]
    return output


# benchmark order; the last one is the production default
STRATEGIES = (linesplit, widthwrap, charwalk)

_ALIASES = {
    "grep": linesplit,
    "line-split": linesplit,
    "linesplit": linesplit,
    "fold": widthwrap,
    "fixed-width": widthwrap,
    "widthwrap": widthwrap,
    "in-process": charwalk,
    "charwalk": charwalk,
} | {strategy.name.lower(): strategy for strategy in STRATEGIES}


def resolve(strategy=Unset, /, *, external=False):
    """
    return the Strategy for a name (or Strategy), enforcing the external flag.

    - Unset → the in-process strategy.
    - names are matched case-insensitively against the strategy names and the
      short aliases ('grep', 'fold', 'in-process', ...).
    - subprocess strategies raise ValueError unless external=True.
    """
    if strategy is Unset:
        return charwalk
    if isinstance(strategy, str):
        try:
            strategy = _ALIASES[strategy.strip().lower()]
        except KeyError:
            raise ValueError("unknown disaggregation strategy %r" % strategy) from None
    if not isinstance(strategy, Strategy):
        raise TypeError("strategy must be a Strategy or a strategy name")
    if strategy.external and not external:
        raise ValueError("strategy %r spawns %r; pass external=True to enable it" % (strategy.name, strategy.tool))
    return strategy


def is_bundle(token, alphabet, /):
    """
    True when token is a bundled short-option group.

    That is: a single leading '-', more than one member character, and every
    member an ASCII letter of the bundle alphabet.
    """
    return (
        len(token) > 2
        and token[0] == "-"
        and token[1] != "-"
        and all(_member(char, alphabet) for char in token[1:])
    )


def disaggregate(token, alphabet, /, *, strategy=Unset, external=False):
    """
    expand '-' + members into ['-' + member, ...], preserving order.

    a one-member token ('-v') expands to itself. tokens that are not a dash
    followed by alphabet members raise ValueError; nothing is partially
    expanded.
    """
    if not isinstance(token, str):
        raise TypeError("disaggregate() first argument must be a string")
    if (
        len(token) < 2
        or token[0] != "-"
        or token[1] == "-"
        or not all(_member(char, alphabet) for char in token[1:])
    ):
        raise ValueError("%r is not a bundle of %s" % (token, "".join(sorted(alphabet)) or "nothing"))
    return resolve(strategy, external=external)(token)


def splice(tokens, alphabet, /, *, strategy=Unset, external=False):
    """
    replace the leading bundle of a pending-token list with its members.

    ['-vn', 'file'] → ['-v', '-n', 'file']; the rest of the list is untouched.
    """
    head, *rest = tokens
    return disaggregate(head, alphabet, strategy=strategy, external=external) + rest


__all__ = (
    "Strategy",
    "strategy",
    "linesplit",
    "widthwrap",
    "charwalk",
    "STRATEGIES",
    "resolve",
    "is_bundle",
    "disaggregate",
    "splice",
)
