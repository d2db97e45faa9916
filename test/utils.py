"""
Utility helpers tests.
"""

from __future__ import annotations

import unittest
from unittest import TestCase

from cmdparser.utils import Unset, UnsetType, coalesce, camelize, mirror, pluralize, rename


class TestUnset(TestCase):

    def testSingleton(self):
        self.assertIs(UnsetType(), Unset)
        self.assertFalse(Unset)
        self.assertEqual(repr(Unset), "Unset")

    def testNotSubclassable(self):
        with self.assertRaises(TypeError):
            class Other(UnsetType): ...

    def testUnionWithTypes(self):
        self.assertIsInstance(Unset, str | Unset)
        self.assertIsInstance("x", str | Unset)

    def testCoalesceKeepsFalseyValues(self):
        self.assertEqual(coalesce(Unset, "x"), "x")
        self.assertIsNone(coalesce(Unset))
        for value in ("", 0, False, None):
            with self.subTest(value=value):
                self.assertIs(coalesce(value, "x"), value)


class TestCamelize(TestCase):

    def testKebabAndSnake(self):
        self.assertEqual(camelize("log-level"), "logLevel")
        self.assertEqual(camelize("dry_run"), "dryRun")
        self.assertEqual(camelize("a-b-c"), "aBC")

    def testStableNames(self):
        for name in ("option1", "help", "logLevel"):
            with self.subTest(name=name):
                self.assertEqual(camelize(name), name)


class TestPluralize(TestCase):

    def testSingularOnlyForOne(self):
        self.assertEqual(pluralize("argument", 1), "argument")
        self.assertEqual(pluralize("argument", 0), "arguments")
        self.assertEqual(pluralize("option", 3), "options")

    def testRejectsNonStrings(self):
        with self.assertRaises(TypeError):
            pluralize(None, 2)


class TestMirror(TestCase):

    def testReadOnlyCopies(self):
        class Holder:
            values = mirror("values")

            def __init__(self):
                self._values = ["a"]

        holder = Holder()
        holder.values.append("b")
        self.assertEqual(holder.values, ["a"])
        with self.assertRaises(AttributeError):
            holder.values = []

    def testRename(self):
        @rename("renamed")
        def function(): ...

        self.assertEqual(function.__name__, "renamed")
        with self.assertRaises(TypeError):
            rename(42, "x")


if __name__ == "__main__":
    unittest.main()
