"""
Parser behavioral tests (parse loop, validator, exit codes).

Scope
- End-to-end scenarios: separate flags, bundled flags, '--' separator,
  missing values, invalid bundle members.
- Validator (noarg) and option-shape classification.
- Inline '--name=value' forms, choices, shared destinations, defaults.
- Positional arity (nargs) and terminal options.
- Shell mode: faults are printed and the process exits with their code.

Conventions
- Test method names follow CamelCase per project convention.
- Tests use the public API (Parser, parse, OptionTable, flag, valued, terminal).
"""

from __future__ import annotations

import io
import unittest
from unittest import TestCase
from unittest.mock import patch

from rich.console import Console

from getoptic import (
    ExitCode,
    InvalidOptionError,
    MissingArgumentError,
    OptionTable,
    ParseError,
    Parser,
    State,
    Strategy,
    UsageError,
    charwalk,
    flag,
    is_option_shaped,
    noarg,
    parse,
    terminal,
    valued,
)
from getoptic import faults


def _table():
    return OptionTable([
        flag("-v"),
        flag("-n"),
        valued("-o"),
    ])


class TestScenarios(TestCase):
    """The reference end-to-end scenarios."""

    def testSeparateFlagsAndPositional(self):
        result = parse(["-v", "-n", "file.txt"], _table())
        self.assertEqual(dict(result.flags), {"v": True, "n": True})
        self.assertEqual(result.positionals, ("file.txt",))

    def testBundledFlagsMatchSeparateFlags(self):
        separate = parse(["-v", "-n", "file.txt"], _table())
        bundled = parse(["-vn", "file.txt"], _table())
        self.assertEqual(dict(bundled.flags), dict(separate.flags))
        self.assertEqual(bundled.positionals, separate.positionals)

    def testDoubleDashDisablesOptionParsing(self):
        result = parse(["--", "-v"], _table())
        self.assertEqual(result.positionals, ("-v",))
        self.assertEqual(dict(result.flags), {})

    def testValueOptionWithoutValueIsMissingArgument(self):
        with self.assertRaises(MissingArgumentError) as context:
            parse(["-o"], _table())
        self.assertEqual(context.exception.code, 22)

    def testBundleWithUnknownMemberIsInvalidOption(self):
        table = OptionTable([flag("-x"), flag("-y")])
        with self.assertRaises(InvalidOptionError) as context:
            parse(["-xyz"], table)
        self.assertEqual(context.exception.code, 22)
        self.assertEqual(context.exception.token, "-xyz")
        self.assertIn("-z", context.exception.message)

    def testFailFastDoesNotPartiallyExpand(self):
        table = OptionTable([flag("-v"), flag("-q")])
        parser = Parser(table)
        with self.assertRaises(InvalidOptionError):
            parser.parse(["-vqz"])


class TestDispatch(TestCase):
    """Option dispatch, values and destinations."""

    def testValueOptionConsumesNextToken(self):
        result = parse(["-o", "out.txt", "in.txt"], _table())
        self.assertEqual(result["o"], "out.txt")
        self.assertEqual(result.positionals, ("in.txt",))

    def testValueMayBeLoneDash(self):
        result = parse(["-o", "-"], _table())
        self.assertEqual(result["o"], "-")

    def testOptionShapedValueIsMissingArgument(self):
        with self.assertRaises(MissingArgumentError):
            parse(["-o", "-v"], _table())

    def testDoubleDashValueIsMissingArgument(self):
        with self.assertRaises(MissingArgumentError):
            parse(["-o", "--"], _table())

    def testLongOptionInlineValue(self):
        table = OptionTable([valued("-t", "--tier")])
        result = parse(["--tier=summary"], table)
        self.assertEqual(result["tier"], "summary")

    def testLongOptionSpacedValue(self):
        table = OptionTable([valued("-t", "--tier")])
        result = parse(["--tier", "abstract"], table)
        self.assertEqual(result["tier"], "abstract")

    def testEmptyInlineValueIsMissingArgument(self):
        table = OptionTable([valued("--tier")])
        with self.assertRaises(MissingArgumentError):
            parse(["--tier="], table)

    def testInlineValueOnFlagIsInvalid(self):
        table = OptionTable([flag("-v", "--verbose")])
        with self.assertRaises(InvalidOptionError) as context:
            parse(["--verbose=yes"], table)
        self.assertNotIsInstance(context.exception, MissingArgumentError)

    def testChoicesRejectUnknownValue(self):
        table = OptionTable([valued("--tier", choices=("summary", "abstract"))])
        with self.assertRaises(InvalidOptionError) as context:
            parse(["--tier", "complete"], table)
        self.assertEqual(context.exception.code, ExitCode.INVALID)
        self.assertEqual(context.exception.token, "complete")

    def testChoicesAcceptKnownValue(self):
        table = OptionTable([valued("--tier", choices=("summary", "abstract"))])
        self.assertEqual(parse(["--tier=abstract"], table)["tier"], "abstract")

    def testSharedDestinationLastOneWins(self):
        table = OptionTable([
            flag("-v", "--verbose"),
            flag("-q", "--quiet", dest="verbose", const=False),
        ])
        self.assertIs(parse(["-v", "-q"], table)["verbose"], False)
        self.assertIs(parse(["-qv"], table)["verbose"], True)

    def testDefaultsSeedUnseenOptions(self):
        table = OptionTable([valued("-d", "--duration", default="3.0"), flag("-v")])
        result = parse(["-v"], table)
        self.assertEqual(result["duration"], "3.0")
        self.assertNotIn("x", result.flags)

    def testDefaultsDoNotOverrideGivenValues(self):
        table = OptionTable([valued("-d", "--duration", default="3.0")])
        self.assertEqual(parse(["-d", "1.5"], table)["duration"], "1.5")

    def testUnknownLongOptionIsInvalid(self):
        with self.assertRaises(InvalidOptionError) as context:
            parse(["--nope"], _table())
        self.assertEqual(context.exception.token, "--nope")

    def testUnknownShortOptionIsInvalid(self):
        with self.assertRaises(InvalidOptionError):
            parse(["-x"], _table())

    def testLoneDashIsPositional(self):
        self.assertEqual(parse(["-"], _table()).positionals, ("-",))

    def testPositionalsKeepOrderAcrossOptions(self):
        result = parse(["a", "-v", "b", "-o", "x", "c"], _table())
        self.assertEqual(result.positionals, ("a", "b", "c"))


class TestBundles(TestCase):
    """Bundle classification and the value-taking member rule."""

    def testValueOptionMayEndBundle(self):
        result = parse(["-vo", "file"], _table())
        self.assertEqual(dict(result.flags), {"v": True, "o": "file"})

    def testValueOptionInsideBundleIsInvalid(self):
        with self.assertRaises(InvalidOptionError) as context:
            parse(["-von", "file"], _table())
        self.assertEqual(context.exception.token, "-von")

    def testValueOptionEndingBundleStillNeedsValue(self):
        with self.assertRaises(MissingArgumentError):
            parse(["-vo"], _table())

    def testNonBundleTokensNeverReachDisaggregator(self):
        calls = []

        def record(token, /):
            calls.append(token)
            return charwalk(token)

        table = OptionTable([flag("-v", "--verbose"), flag("-n"), flag("-long")])
        parser = Parser(table, strategy=Strategy("recorder", record))
        parser.parse(["--verbose", "-v", "plain", "-long", "-", "--", "-vn"])
        self.assertEqual(calls, [])

        parser.parse(["-vn"])
        self.assertEqual(calls, ["-vn"])

    def testRepeatedMembers(self):
        result = parse(["-vvn"], _table())
        self.assertEqual(dict(result.flags), {"v": True, "n": True})

    def testExternalStrategyNeedsFeatureFlag(self):
        with self.assertRaises(ValueError):
            Parser(_table(), strategy="grep")


class TestArity(TestCase):
    """Positional arity and usage errors."""

    def testNoPositionalsAllowed(self):
        with self.assertRaises(UsageError) as context:
            Parser(_table(), nargs=0).parse(["-v", "extra"])
        self.assertEqual(context.exception.code, 2)
        self.assertEqual(context.exception.token, "extra")

    def testExactCountShortfall(self):
        with self.assertRaises(UsageError):
            Parser(_table(), nargs=2).parse(["one"])

    def testExactCountSatisfied(self):
        result = Parser(_table(), nargs=2).parse(["one", "two"])
        self.assertEqual(result.positionals, ("one", "two"))

    def testOptionalSingle(self):
        parser = Parser(_table(), nargs="?")
        self.assertEqual(parser.parse([]).positionals, ())
        with self.assertRaises(UsageError):
            parser.parse(["a", "b"])

    def testAtLeastOne(self):
        parser = Parser(_table(), nargs="+")
        with self.assertRaises(UsageError):
            parser.parse(["-v"])
        self.assertEqual(parser.parse(["a", "b"]).positionals, ("a", "b"))

    def testPositionalOnlyTokensCountTowardsArity(self):
        with self.assertRaises(UsageError):
            Parser(_table(), nargs=1).parse(["--", "a", "b"])

    def testInvalidNargsRejected(self):
        with self.assertRaises(ValueError):
            Parser(_table(), nargs=-1)
        with self.assertRaises(ValueError):
            Parser(_table(), nargs="many")
        with self.assertRaises(TypeError):
            Parser(_table(), nargs=True)


class TestTerminal(TestCase):
    """Terminal options end the parse."""

    def testTerminalStopsParsing(self):
        table = OptionTable([flag("-v"), terminal("-h", "--help", action=lambda: None)])
        result = Parser(table, nargs=0).parse(["-h", "--bogus", "extra"])
        self.assertIs(result.terminal, table["-h"])
        self.assertEqual(result.code, ExitCode.SUCCESS)

    def testTerminalInsideBundle(self):
        table = OptionTable([flag("-v"), terminal("-h", action=lambda: None)])
        result = parse(["-vh", "ignored", "-?"], table)
        self.assertTrue(result["v"])
        self.assertIs(result.terminal, table["-h"])

    def testTerminalSkipsArityCheck(self):
        table = OptionTable([terminal("-V", "--version", action=lambda: None)])
        result = Parser(table, nargs=2).parse(["--version"])
        self.assertIsNotNone(result.terminal)

    def testInvokeRunsActionAndExitsZero(self):
        calls = []
        table = OptionTable([terminal("-V", "--version", action=lambda: calls.append("version"))])
        with self.assertRaises(SystemExit) as context:
            Parser(table).invoke(["-V"])
        self.assertEqual(context.exception.code, 0)
        self.assertEqual(calls, ["version"])

    def testInvokeReturnsResultOnSuccess(self):
        result = Parser(_table()).invoke(["-vn", "file.txt"])
        self.assertEqual(result.positionals, ("file.txt",))


class TestShellMode(TestCase):
    """Faults surface as one message plus the matching exit status."""

    def setUp(self):
        self.buffer = io.StringIO()
        self.patcher = patch.object(faults, "console", Console(file=self.buffer, width=200))
        self.patcher.start()

    def tearDown(self):
        self.patcher.stop()

    def testInvalidOptionExits22(self):
        with self.assertRaises(SystemExit) as context:
            Parser(_table(), shell=True, prog="tool").parse(["--bogus"])
        self.assertEqual(context.exception.code, 22)
        output = self.buffer.getvalue()
        self.assertIn("--bogus", output)
        self.assertIn("tool", output)

    def testUsageErrorExits2(self):
        with self.assertRaises(SystemExit) as context:
            Parser(_table(), nargs=0).invoke(["stray"])
        self.assertEqual(context.exception.code, 2)
        self.assertIn("stray", self.buffer.getvalue())

    def testMissingArgumentExits22(self):
        with self.assertRaises(SystemExit) as context:
            Parser(_table()).invoke(["-o"])
        self.assertEqual(context.exception.code, 22)
        self.assertIn("requires an argument", self.buffer.getvalue())

    def testHelpHintWhenHelpIsRegistered(self):
        table = OptionTable([flag("-v"), terminal("-h", "--help", action=lambda: None)])
        with self.assertRaises(SystemExit):
            Parser(table, prog="tool").invoke(["-x"])
        self.assertIn("tool --help", self.buffer.getvalue())

    def testInvokeRestoresShellSetting(self):
        parser = Parser(_table())
        with self.assertRaises(SystemExit):
            parser.invoke(["-o"])
        self.assertFalse(parser.shell)


class TestValidator(TestCase):
    """noarg and option-shape classification."""

    def testNoargWithoutNextToken(self):
        with self.assertRaises(MissingArgumentError) as context:
            noarg("-o", [])
        self.assertEqual(context.exception.token, "-o")

    def testNoargWithOptionShapedNext(self):
        with self.assertRaises(MissingArgumentError):
            noarg("-o", ["-v"])
        with self.assertRaises(MissingArgumentError):
            noarg("--output", ["--verbose"])

    def testNoargAccepts(self):
        self.assertIsNone(noarg("-o", ["value"]))
        self.assertIsNone(noarg("-o", ["-"]))

    def testIsOptionShaped(self):
        self.assertTrue(is_option_shaped("-v"))
        self.assertTrue(is_option_shaped("-xyz"))
        self.assertFalse(is_option_shaped("-"))
        self.assertFalse(is_option_shaped("--verbose"))
        self.assertFalse(is_option_shaped("plain"))

    def testRegisteredSingleDashLongSpellingIsNotOptionShaped(self):
        table = OptionTable([flag("-long")])
        self.assertFalse(is_option_shaped("-long", table))
        self.assertTrue(is_option_shaped("-lonk", table))


class TestParseState(TestCase):
    """Errors are recorded on the parse state before surfacing."""

    def testTriggerRecordsError(self):
        from getoptic.parser import ParseState
        from collections import deque

        parser = Parser(_table())
        state = ParseState(deque())
        with self.assertRaises(ParseError) as context:
            parser.trigger(UsageError("unexpected argument 'x'", token="x"), state)
        self.assertEqual(state.errors, [context.exception])
        self.assertIs(state.state, State.DONE)

    def testValueOptionWaitsForNextToken(self):
        from getoptic.parser import ParseState
        from collections import deque

        parser = Parser(_table())
        state = ParseState(deque(["-", "rest"]))
        parser._dispatch(state, "-o", parser.table["-o"], None)
        self.assertIs(state.state, State.CONSUMING_VALUE)
        self.assertEqual(state.pending, ("-o", parser.table["-o"]))
        self.assertEqual(list(state.remaining), ["-", "rest"])

        parser._scan(state)
        self.assertEqual(state.flags, {"o": "-"})
        self.assertEqual(state.positionals, ["rest"])
        self.assertIs(state.state, State.SCANNING)
        self.assertIsNone(state.pending)

    def testParseRejectsBareString(self):
        with self.assertRaises(TypeError):
            parse("-v", _table())

    def testParseRejectsNonStringTokens(self):
        with self.assertRaises(TypeError):
            parse(["-v", 1], _table())


if __name__ == "__main__":
    unittest.main()
