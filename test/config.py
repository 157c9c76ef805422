"""
Runtime configuration tests (callbacks, whitelist, built-in commands).

Scope
- Whitelisting requires a registered config callback for every key.
- A key stays writable while any application whitelists it.
- 'show', 'set' and 'describe' run through the regular pipeline.

Conventions
- Test method names follow CamelCase per project convention.
- The local node is pinned through $QUORUM_NODE.
"""

from __future__ import annotations

import io
import os
import unittest
from contextlib import redirect_stdout, redirect_stderr
from unittest import TestCase, mock

import quorum
from quorum import (
    register_config,
    register_formatter,
    register_config_whitelist,
    unregister_config_whitelist,
    register_command,
    register_node_finder,
    whitelisted,
    run,
    Unset,
)
from quorum.faults import InvalidConfigKeysError


def invoke(argv):
    stdout, stderr = io.StringIO(), io.StringIO()
    with redirect_stdout(stdout), redirect_stderr(stderr):
        code = run(argv)
    return code, stdout.getvalue(), stderr.getvalue()


class TestWhitelist(TestCase):
    """Config whitelist bookkeeping."""

    def setUp(self):
        quorum.reset()
        register_config("search.buffer", lambda key, value, flags: 42)

    def testInvalidKeysRegisterNothing(self):
        with self.assertRaises(InvalidConfigKeysError) as context:
            register_config_whitelist(["search.buffer", "search.ghost", "x.y"], "search")
        self.assertEqual(context.exception.input, ("search.ghost", "x.y"))
        self.assertFalse(whitelisted("search.buffer"))

    def testKeysAsSegments(self):
        register_config_whitelist([["search", "buffer"]], "search")
        self.assertTrue(whitelisted("search.buffer"))

    def testKeyStaysWhitelistedWhileAnyAppListsIt(self):
        register_config_whitelist(["search.buffer"], "search")
        register_config_whitelist(["search.buffer"], "index")

        unregister_config_whitelist(["search.buffer"], "search")
        self.assertTrue(whitelisted("search.buffer"))
        unregister_config_whitelist(["search.buffer"], "index")
        self.assertFalse(whitelisted("search.buffer"))

    def testUnregisterRejectsInvalidKeys(self):
        with self.assertRaises(InvalidConfigKeysError):
            unregister_config_whitelist(["search.ghost"], "search")


class TestConfigCommands(TestCase):
    """show / set / describe through quorum.run()."""

    def setUp(self):
        quorum.reset()
        self.enterContext(mock.patch.dict(os.environ, {"QUORUM_NODE": "n1"}))
        self.values = {"search.buffer": 42}
        self.writes = []

        def callback(key, value, flags):
            if value is Unset:
                return self.values[key]
            self.writes.append((key, value, dict(flags)))
            self.values[key] = int(value)
            return "%s set to %s" % (key, value)

        register_config("search.buffer", callback)
        register_formatter("search.buffer", lambda value: "%d KiB" % value)

    def testShow(self):
        code, stdout, _ = invoke(["admin", "show", "search.buffer"])
        self.assertEqual(code, 0)
        self.assertIn("search.buffer", stdout)
        self.assertIn("n1", stdout)
        self.assertIn("42 KiB", stdout)

    def testShowUnknownKey(self):
        code, _, stderr = invoke(["admin", "show", "search.ghost"])
        self.assertEqual(code, 1)
        self.assertIn("unknown config key", stderr)

    def testShowAllReportsDownNodes(self):
        register_node_finder(lambda: ["n1", "n2"])

        code, stdout, stderr = invoke(["admin", "show", "search.buffer", "--all"])
        self.assertEqual(code, 0)
        self.assertIn("42 KiB", stdout)
        self.assertIn("failed to reach: n2", stderr)

    def testSetRequiresWhitelist(self):
        code, _, stderr = invoke(["admin", "set", "search.buffer=64"])
        self.assertEqual(code, 1)
        self.assertIn("is not allowed", stderr)
        self.assertEqual(self.writes, [])

    def testSetWhitelisted(self):
        register_config_whitelist(["search.buffer"], "search")

        code, stdout, _ = invoke(["admin", "set", "search.buffer=64", "--verbose"])
        self.assertEqual(code, 0)
        self.assertIn("search.buffer set to 64", stdout)
        self.assertEqual(self.writes, [("search.buffer", "64", {"verbose": True})])
        self.assertEqual(self.values["search.buffer"], 64)

    def testSetRejectsBareKeys(self):
        register_config_whitelist(["search.buffer"], "search")

        code, _, _ = invoke(["admin", "set", "search.buffer"])
        self.assertEqual(code, 1)
        self.assertEqual(self.writes, [])

    def testDescribe(self):
        register_config_whitelist(["search.buffer"], "search")

        code, stdout, _ = invoke(["admin", "describe", "search.buffer"])
        self.assertEqual(code, 0)
        self.assertIn("search.buffer", stdout)
        self.assertIn("search", stdout)

    def testApplicationCommandWins(self):
        register_command(["admin", "show"], "_", "_", lambda path, keys, flags: ["application show"])

        code, stdout, _ = invoke(["admin", "show", "search.buffer"])
        self.assertEqual(code, 0)
        self.assertIn("application show", stdout)


if __name__ == "__main__":
    unittest.main()
