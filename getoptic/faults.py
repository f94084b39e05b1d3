"""
Getoptic faults (parse errors) and rendering.

Scope
- ExitCode: the fixed, POSIX-flavoured vocabulary of numeric outcomes a parse
  can end with (0 success, 1 general failure, 2 usage, 22 invalid option).
- ParseError and its subclasses: exception types that carry a message plus
  render options and know how to render themselves with rich.
- trigger(): central entry point to surface a fault (raise it, or print it and
  exit when running in shell mode).
- fail(): the "report and terminate" collaborator used by embedding programs.

Conventions
- Messages are lowercased, short, and name the offending token verbatim.
- Exactly one fault surfaces per parse; nothing is batched or deferred.

Integration
- The parse loop raises faults; Parser.parse() routes the first one through
  Parser.trigger(), which re-raises it, or prints it to stderr and exits with
  the fault's code in shell mode (Parser.invoke() always runs in shell mode).
"""
import copy
import sys
from enum import IntEnum
from types import MappingProxyType

from rich.console import Console, Group
from rich.panel import Panel
from rich.text import Text

from .utils import Unset, coalesce

console = Console(stderr=True)

# fault palette; a host may override entries with a __styles__ dict in __main__
STYLES = {
    "prog": "bold bright_white",
    "code": "bold cyan",
    "title": "bold magenta",
    "message": "default",
    "arrow": "green dim",
    "hint": "italic green",
}


class ExitCode(IntEnum):
    """
    canonical exit statuses surfaced by a parse (stable identifiers).

    - SUCCESS (0): tokens consumed, or a terminal option (help/version) fired.
    - FAILURE (1): any other unrecoverable condition (e.g. a missing external tool).
    - USAGE (2): wrong number or shape of positional arguments.
    - INVALID (22): invalid option or malformed option argument; mirrors EINVAL.

    downstream callers assume these exact numbers; never renumber them.
    """
    SUCCESS = 0
    FAILURE = 1
    USAGE = 2
    INVALID = 22

    def normalize(self):
        """
        return a host-normalized label for this code.

        the host application can provide a __codes__ mapping in __main__ to
        show friendlier labels; by default the numeric value is used.
        """
        return str(getattr(__import__("__main__"), "__codes__", {}).get(self, self.value))


class ParseError(Exception):
    """
    base fault: a fatal parse outcome with a numeric code and a message.

    options (read-only mapping)
    - code: ExitCode, defaults to the class' __code__.
    - title: short heading used by the renderer.
    - hint: optional one-line suggestion.
    - token: the offending token, when there is one.
    - shell/colorful/fancy/prog: rendering switches supplied by trigger().
    """
    __code__ = ExitCode.FAILURE
    __title__ = "general failure"

    def __init__(self, message=Unset, /, **options):
        if not isinstance(message, str | Unset):
            raise TypeError("%s() message must be a string" % type(self).__name__)
        super().__init__(coalesce(message, ""))
        self.message = message
        self.options = MappingProxyType({
            "code": type(self).__code__,
            "title": type(self).__title__,
        } | options)

    @property
    def code(self):
        return self.options["code"]

    @property
    def token(self):
        return self.options.get("token")

    def __str__(self):
        return coalesce(self.message, "")

    def _style(self, name):
        if not self.options.get("colorful", True):
            return ""
        return (STYLES | getattr(__import__("__main__"), "__styles__", {})).get(name, "")

    def __rich__(self):
        prog = getattr(__import__("__main__"), "__prog__", None) or self.options.get("prog") or "getoptic"
        code = self.code.normalize() if isinstance(self.code, ExitCode) else str(self.code)

        header = Text("[ ")
        header.append(prog, self._style("prog"))
        header.append(" — ")
        header.append(code, self._style("code"))
        header.append(" | ")
        header.append(self.options["title"].title(), self._style("title"))
        header.append(" ]")

        body = [Text(str(self), self._style("message"))]
        if hint := self.options.get("hint"):
            body.append(Text(" → ", self._style("arrow")) + Text(hint, self._style("hint")))

        if self.options.get("fancy", False):
            return Panel(Group(*body), title=header, title_align="left")
        return Group(header, *body)

    def __trigger__(self):
        if not self.options.get("shell", False):
            raise self from None
        console.print(self)
        sys.exit(int(self.code))

    def __replace__(self, *unused, **overrides):
        assert not unused, "unused arguments are not allowed"
        return type(self)(self.message, **{**self.options, **overrides})


class GeneralFailure(ParseError): ...


class UsageError(ParseError):
    __code__ = ExitCode.USAGE
    __title__ = "usage error"


class InvalidOptionError(ParseError):
    __code__ = ExitCode.INVALID
    __title__ = "invalid option"


class MissingArgumentError(InvalidOptionError):
    __title__ = "missing argument"


_FAULTS = {
    ExitCode.FAILURE: GeneralFailure,
    ExitCode.USAGE: UsageError,
    ExitCode.INVALID: InvalidOptionError,
}


def trigger(fault, /, **options):
    """
    surface a fault with the given runtime options.

    the options are merged into a copy of the fault (copy.replace); with
    shell=True the copy is printed and the process exits with its code,
    otherwise the copy is raised.
    """
    if not isinstance(fault, ParseError):
        raise TypeError("trigger() argument must be a ParseError, not %s" % type(fault).__name__)
    copy.replace(fault, **options).__trigger__()


def fail(code, message, /, **options):
    """
    report message and terminate with exit status code (never returns).

    the fault class is chosen from the code (2 → UsageError, 22 →
    InvalidOptionError, anything else non-zero → GeneralFailure). shell mode is
    on unless the caller overrides it, in which case the fault is raised.
    """
    if not isinstance(code, int) or isinstance(code, bool):
        raise TypeError("fail() first argument must be an integer")
    if not code:
        raise ValueError("fail() code must be non-zero")
    try:
        code = ExitCode(code)
    except ValueError:
        pass
    fault = _FAULTS.get(code, GeneralFailure)
    trigger(fault(message, code=code), **{"shell": True} | options)


__all__ = (
    "ExitCode",
    "ParseError",
    "GeneralFailure",
    "UsageError",
    "InvalidOptionError",
    "MissingArgumentError",
    "trigger",
    "fail",
)
