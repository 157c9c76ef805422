"""
Argument parsing and validation tests (keys, flags, global flags, specs).

Scope
- Datatype conversion and position-first faults for keys and flags.
- Global flags (--all, --format, --help) are never reported as unknown.
- Wildcard key/flag specs accept anything and expose the extra tokens.
- Spec construction rejects inconsistent declarations.
- Command flags cannot reuse the spellings of the global flags.

Conventions
- Test method names follow CamelCase per project convention.
- Tests drive the parser phases through the public matcher.
"""

from __future__ import annotations

import unittest
from unittest import TestCase

import quorum
from quorum import register_command, match, Key, Flag, keyspec, flagspec
from quorum.faults import (
    MalformedTokenError,
    UnknownFlagError,
    FlagAssignmentError,
    DuplicatedFlagError,
    FlagValueRequiredError,
    UnexpectedKeyError,
    InvalidChoiceError,
    MissingKeysError,
    UnknownKeyError,
    DuplicatedKeyError,
    InvalidValueError,
    UnknownFormatError,
)
from quorum.parser import parse, extract_global_flags, validate


def handler(path, keys, flags):
    return []


def arguments(argv):
    return validate(extract_global_flags(parse(match(argv))))


class TestFlags(TestCase):
    """Flag parsing, conversion and faults."""

    def setUp(self):
        quorum.reset()
        register_command(
            ["admin", "wait"],
            (),
            [
                Flag("timeout", "t", datatype="integer"),
                Flag("force", "f"),
                Flag("level", datatype="integer", default=2),
            ],
            handler,
        )

    def testIntegerFlagForms(self):
        self.assertEqual(arguments(["admin", "wait", "--timeout", "30"]).flags["timeout"], 30)
        self.assertEqual(arguments(["admin", "wait", "--timeout=-5"]).flags["timeout"], -5)
        self.assertEqual(arguments(["admin", "wait", "-t", "7"]).flags["timeout"], 7)

    def testIntegerFlagRejectsText(self):
        with self.assertRaises(InvalidValueError) as context:
            arguments(["admin", "wait", "--timeout", "abc"])
        self.assertIn("third position", context.exception.message)
        self.assertEqual(context.exception.value, "abc")

    def testPresenceFlagAndDefaults(self):
        flags = arguments(["admin", "wait", "-f"]).flags
        self.assertEqual(dict(flags), {"force": True, "level": 2})

    def testOmittedFlagsAreAbsent(self):
        self.assertNotIn("timeout", arguments(["admin", "wait"]).flags)

    def testPresenceFlagCannotTakeValue(self):
        with self.assertRaises(FlagAssignmentError):
            arguments(["admin", "wait", "--force=yes"])

    def testValuedFlagRequiresValue(self):
        with self.assertRaises(FlagValueRequiredError):
            arguments(["admin", "wait", "--timeout"])
        with self.assertRaises(FlagValueRequiredError):
            arguments(["admin", "wait", "--timeout", "--force"])

    def testUnknownFlagSuggestsCloseMatch(self):
        with self.assertRaises(UnknownFlagError) as context:
            arguments(["admin", "wait", "--forse"])
        self.assertIn("--force", context.exception.suggestions)

    def testDuplicatedFlag(self):
        with self.assertRaises(DuplicatedFlagError):
            arguments(["admin", "wait", "--force", "-f"])

    def testMalformedFlag(self):
        with self.assertRaises(MalformedTokenError):
            arguments(["admin", "wait", "---force"])

    def testRequiredFlag(self):
        register_command(["admin", "login"], (), [Flag("token", datatype="string", required=True)], handler)

        with self.assertRaises(FlagValueRequiredError):
            arguments(["admin", "login"])
        self.assertEqual(arguments(["admin", "login", "--token", "s3cr3t"]).flags["token"], "s3cr3t")


class TestGlobalFlags(TestCase):
    """Global flags are extracted before the command's own validation."""

    def setUp(self):
        quorum.reset()
        register_command(["admin", "status"], (), (), handler)

    def testGlobalFlagsNeverUnknown(self):
        parsed = arguments(["admin", "status", "--all", "--format", "json", "-h"])
        self.assertEqual(dict(parsed.globals), {"all": True, "format": "json", "help": True})
        self.assertEqual(dict(parsed.flags), {})

    def testUnknownFormatFailsEarly(self):
        with self.assertRaises(UnknownFormatError):
            arguments(["admin", "status", "--format=yaml"])

    def testRepeatedGlobalFlag(self):
        with self.assertRaises(DuplicatedFlagError):
            arguments(["admin", "status", "--all", "--all"])


class TestKeys(TestCase):
    """Positional and named keys."""

    def setUp(self):
        quorum.reset()
        register_command(["admin", "join"], [Key("node"), Key("count", "integer", default=1)], (), handler)

    def testPositionalKeysAndDefaults(self):
        self.assertEqual(dict(arguments(["admin", "join", "n1"]).keys), {"node": "n1", "count": 1})
        self.assertEqual(dict(arguments(["admin", "join", "n1", "3"]).keys), {"node": "n1", "count": 3})

    def testNamedKeys(self):
        keys = arguments(["admin", "join", "count=3", "n1"]).keys
        self.assertEqual(dict(keys), {"node": "n1", "count": 3})

    def testMissingKeys(self):
        with self.assertRaises(MissingKeysError) as context:
            arguments(["admin", "join"])
        self.assertEqual(context.exception.input, ("node",))

    def testUnexpectedKey(self):
        with self.assertRaises(UnexpectedKeyError) as context:
            arguments(["admin", "join", "n1", "2", "extra"])
        self.assertIn("fifth position", context.exception.message)

    def testUnknownNamedKey(self):
        with self.assertRaises(UnknownKeyError):
            arguments(["admin", "join", "n1", "2", "bogus=1"])

    def testDuplicatedKey(self):
        with self.assertRaises(DuplicatedKeyError):
            arguments(["admin", "join", "n1", "node=n2"])

    def testInvalidKeyValue(self):
        with self.assertRaises(InvalidValueError):
            arguments(["admin", "join", "n1", "many"])

    def testChoices(self):
        register_command(["admin", "mode"], [Key("mode", choices={"fast", "safe"})], (), handler)

        self.assertEqual(arguments(["admin", "mode", "safe"]).keys["mode"], "safe")
        with self.assertRaises(InvalidChoiceError):
            arguments(["admin", "mode", "slow"])

    def testBooleanAndNegativeValues(self):
        register_command(["admin", "tune"], [Key("enabled", "boolean"), Key("delta", "integer")], (), handler)

        self.assertEqual(dict(arguments(["admin", "tune", "yes", "-3"]).keys), {"enabled": True, "delta": -3})
        with self.assertRaises(InvalidValueError):
            arguments(["admin", "tune", "maybe", "1"])


class TestWildcardSpecs(TestCase):
    """Wildcard key and flag specs."""

    def setUp(self):
        quorum.reset()
        register_command(["admin", "echo"], "_", "_", handler)

    def testWildcardAcceptsAnything(self):
        parsed = arguments(["admin", "echo", "x", "a=1", "b", "--loud", "--level=3"])
        self.assertEqual(dict(parsed.keys), {"a": "1"})
        self.assertEqual(parsed.keys.overflow, ("x", "b"))
        self.assertEqual(dict(parsed.flags), {"loud": True, "level": "3"})

    def testWildcardFlagTakesFollowingPlainToken(self):
        parsed = arguments(["admin", "echo", "--level", "3", "--loud", "a=1", "--tag", "--", "x"])
        self.assertEqual(dict(parsed.flags), {"level": "3", "loud": True, "tag": True})
        self.assertEqual(dict(parsed.keys), {"a": "1"})
        self.assertEqual(parsed.keys.overflow, ("x",))

    def testWildcardFlagsUnderDeclaredKeys(self):
        register_command(["admin", "tune"], ["node"], "_", handler)

        parsed = arguments(["admin", "tune", "n1", "--level", "3"])
        self.assertEqual(dict(parsed.keys), {"node": "n1"})
        self.assertEqual(dict(parsed.flags), {"level": "3"})

    def testTerminatorEndsFlags(self):
        parsed = arguments(["admin", "echo", "--", "--loud"])
        self.assertEqual(parsed.keys.overflow, ("--loud",))
        self.assertEqual(dict(parsed.flags), {})


class TestSpecs(TestCase):
    """Key and Flag declarations."""

    def testFlagSpellings(self):
        self.assertEqual(Flag("dry_run").names, ("--dry-run",))
        self.assertEqual(Flag("force", "f").names, ("--force", "-f"))
        self.assertTrue(Flag("force").presence)
        self.assertFalse(Flag("level", datatype="integer").presence)

    def testKeyCannotBePresenceOnly(self):
        with self.assertRaises(ValueError):
            Key("node", "flag")

    def testPresenceFlagCannotDeclareDefault(self):
        with self.assertRaises(TypeError):
            Flag("force", default=True)

    def testDefaultMakesKeyOptional(self):
        self.assertFalse(Key("count", "integer", default=1).required)

    def testSpecNormalization(self):
        self.assertEqual(keyspec("_"), "_")
        self.assertEqual(keyspec(["node"]), (Key("node"),))
        self.assertEqual(flagspec(["force"]), (Flag("force"),))
        with self.assertRaises(TypeError):
            keyspec("node")
        with self.assertRaises(ValueError):
            keyspec(["node", Key("node")])

    def testGlobalFlagSpellingsAreReserved(self):
        for flag in [Flag("host", "h", datatype="string"), Flag("all"), Flag("format", datatype="string"), Flag("dump", longname="help")]:
            with self.assertRaises(ValueError):
                flagspec([flag])
            with self.assertRaises(ValueError):
                register_command(["admin", "connect"], (), [flag], handler)
        self.assertEqual(flagspec([Flag("host", "H", datatype="string")])[0].names, ("--host", "-H"))

    def testEqualSpecsHashEqual(self):
        self.assertEqual(len({Key("node"), Key("node")}), 1)
        self.assertEqual(len({Flag("force", "f"), Flag("force", "f")}), 1)
        self.assertEqual(len({Flag("level", datatype="integer", choices=[1, 2]), Flag("level", datatype="integer", choices=[1, 2])}), 1)
        self.assertEqual(len({Key("node"), Key("node", "integer")}), 2)
        self.assertIn(Flag("force"), {Flag("force"): True})


if __name__ == "__main__":
    unittest.main()
