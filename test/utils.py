"""
Tests for the Unset sentinel and the small helpers of quorum.utils.

This module verifies:
- Unset is a falsy singleton that survives copying and pickling.
- coalesce() only replaces Unset.
- ordinal() labels used by position-first fault messages.
"""
import copy
import pickle
import unittest
from unittest import TestCase

from quorum.utils import *


class UnsetTest(TestCase):
    """
    Test suite for the `Unset` singleton.
    """

    def testSingleton(self):
        self.assertIs(UnsetType(), Unset)
        self.assertIs(copy.deepcopy(Unset), Unset)
        self.assertIs(pickle.loads(pickle.dumps(Unset)), Unset)

    def testFalsyButDistinct(self):
        self.assertFalse(Unset)
        self.assertIsNot(Unset, None)
        self.assertEqual(repr(Unset), "Unset")

    def testFinal(self):
        with self.assertRaises(TypeError):
            type("Derived", (UnsetType,), {})

    def testCoalesce(self):
        self.assertEqual(coalesce(Unset, "human"), "human")
        self.assertIsNone(coalesce(Unset))
        self.assertEqual(coalesce(0, 1), 0)
        self.assertIsNone(coalesce(None, "json"))


class OrdinalTest(TestCase):

    def testOrdinals(self):
        self.assertEqual(ordinal(1), "first")
        self.assertEqual(ordinal(10), "tenth")
        self.assertEqual(ordinal(11), "11th")
        self.assertEqual(ordinal(22), "22nd")
        self.assertEqual(ordinal(103), "103rd")
        self.assertEqual(ordinal(112), "112th")


if __name__ == "__main__":
    unittest.main()
