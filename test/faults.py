"""
Faults module tests (codes, messages, rendering, trigger).

Conventions
- Test method names follow CamelCase per project convention.
"""

from __future__ import annotations

import copy
import unittest
from unittest import TestCase

from cmdparser.faults import (
    FaultCode,
    ParserException,
    UnknownFlagError,
    MissingRequiredError,
    render,
    trigger,
)


class TestParserException(TestCase):

    def testStrIsTheMessage(self):
        fault = UnknownFlagError("Unknown flag: --foo", code=FaultCode.UNKNOWN_FLAG)
        self.assertEqual(str(fault), "Unknown flag: --foo")
        self.assertEqual(fault.message, "Unknown flag: --foo")
        self.assertIsInstance(fault, ParserException)

    def testEmptyMessage(self):
        self.assertEqual(str(ParserException()), "")

    def testOptionsAreReadOnly(self):
        fault = ParserException("boom", code=FaultCode.UNKNOWN_FLAG)
        with self.assertRaises(TypeError):
            fault.options["code"] = FaultCode.MISSING_VALUE

    def testReplaceKeepsTypeAndMergesOptions(self):
        fault = MissingRequiredError("missing", code=FaultCode.MISSING_REQUIRED, missing=("foo",))
        replaced = copy.replace(fault, prog="tool")
        self.assertIsInstance(replaced, MissingRequiredError)
        self.assertEqual(replaced.message, "missing")
        self.assertEqual(replaced.options["missing"], ("foo",))
        self.assertEqual(replaced.options["prog"], "tool")
        self.assertNotIn("prog", fault.options)

    def testCodesAreNormalizedToTheirValue(self):
        self.assertEqual(FaultCode.UNKNOWN_COMMAND.normalize(), "11101")


class TestRender(TestCase):

    def testPlainReport(self):
        fault = UnknownFlagError(
            "Unknown flag: --foo",
            code=FaultCode.UNKNOWN_FLAG,
            title="unknown flag",
            hint="run with --help",
            prog="tool",
        )
        text = render(fault)
        self.assertIn("tool", text)
        self.assertIn("11111", text)
        self.assertIn("Unknown Flag", text)
        self.assertIn("Unknown flag: --foo", text)
        self.assertIn("run with --help", text)
        self.assertNotIn("\x1b[", text)

    def testFancyReportIsBoxed(self):
        text = render(ParserException("boom", prog="tool", fancy=True))
        self.assertIn("boom", text)
        self.assertIn("╭", text)

    def testColorfulReport(self):
        self.assertIn("\x1b[", render(ParserException("boom", colorful=True), colorful=True))


class TestTrigger(TestCase):

    def testRaisesOutsideShell(self):
        with self.assertRaises(UnknownFlagError) as context:
            trigger(UnknownFlagError("Unknown flag: --foo"), prog="tool")
        self.assertEqual(context.exception.options["prog"], "tool")

    def testPrintsAndExitsInShell(self):
        printed = []
        with self.assertRaises(SystemExit) as context:
            trigger(ParserException("boom"), shell=True, printer=printed.append)
        self.assertEqual(context.exception.code, 1)
        self.assertEqual(len(printed), 1)
        self.assertIn("boom", printed[0])
        self.assertFalse(printed[0].endswith("\n"))

    def testRejectsNonFaults(self):
        with self.assertRaises(TypeError):
            trigger(ValueError("nope"))


if __name__ == "__main__":
    unittest.main()
