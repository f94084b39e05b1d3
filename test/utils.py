"""
Tests for the internal helpers in getoptic.utils.

This module verifies:
- The Unset sentinel: singleton identity, falsy semantics, union support, finality.
- coalesce(): only Unset is replaced.
- rename(): direct and decorator forms.
- mirror(): read-only properties handing out fresh containers.
"""
import unittest
from unittest import TestCase

from getoptic.utils import *


class UnsetTest(TestCase):
    """
    Test suite for the `Unset` sentinel.
    """

    def testSingleton(self) -> None:
        self.assertIs(UnsetType(), Unset)
        self.assertIs(UnsetType(), UnsetType())

    def testFalsy(self) -> None:
        self.assertFalse(Unset)
        self.assertIsNot(Unset, None)
        self.assertNotEqual(Unset, None)

    def testRepr(self) -> None:
        self.assertEqual(repr(Unset), "Unset")

    def testUnion(self) -> None:
        """
        `str | Unset` is usable in isinstance checks.
        """
        self.assertIsInstance("x", str | Unset)
        self.assertIsInstance(Unset, str | Unset)
        self.assertNotIsInstance(3, str | Unset)
        self.assertIsInstance(Unset, Unset | int)

    def testFinal(self) -> None:
        with self.assertRaises(TypeError):
            type("Subclass", (UnsetType,), {})


class CoalesceTest(TestCase):

    def testReplacesUnset(self) -> None:
        self.assertEqual(coalesce(Unset, "-"), "-")
        self.assertIsNone(coalesce(Unset))

    def testKeepsFalsyValues(self) -> None:
        for value in (None, 0, "", [], False):
            self.assertIs(coalesce(value, "-"), value)


class RenameTest(TestCase):

    def testDirect(self) -> None:
        def function():
            pass

        self.assertIs(rename("action", function), function)
        self.assertEqual(function.__name__, "action")
        self.assertEqual(function.__qualname__, "action")

    def testDecorator(self) -> None:
        @rename("action")
        def function():
            pass

        self.assertEqual(function.__name__, "action")

    def testRejectsBadArguments(self) -> None:
        with self.assertRaises(TypeError):
            rename("name", "not callable")
        with self.assertRaises(TypeError):
            rename("name", print)
        with self.assertRaises(TypeError):
            rename(3, lambda: None)
        with self.assertRaises(TypeError):
            rename()


class MirrorTest(TestCase):

    def setUp(self) -> None:
        class Holder:
            items = mirror("items")
            lookup = mirror("lookup")
            chars = mirror("chars")
            name = mirror("name")

            def __init__(self):
                self._items = [["a"], "b"]
                self._lookup = {"k": ["v"]}
                self._chars = {"v", "q"}
                self._name = "holder"

        self.holder = Holder()

    def testReadOnly(self) -> None:
        with self.assertRaises(AttributeError):
            self.holder.name = "other"

    def testFreshContainers(self) -> None:
        items = self.holder.items
        items[0].append("x")
        self.assertEqual(self.holder.items, [["a"], "b"])

        lookup = self.holder.lookup
        lookup["k"].append("w")
        self.assertEqual(self.holder.lookup, {"k": ["v"]})

    def testSetsBecomeFrozen(self) -> None:
        self.assertEqual(self.holder.chars, frozenset("vq"))
        self.assertIsInstance(self.holder.chars, frozenset)

    def testScalarsPassThrough(self) -> None:
        self.assertEqual(self.holder.name, "holder")

    def testRejectsNonString(self) -> None:
        with self.assertRaises(TypeError):
            mirror(3)


if __name__ == "__main__":
    unittest.main()
