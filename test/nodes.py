"""
Cluster fan-out and error-stream forwarding tests.

Scope
- Node finder registration (single slot) and the local fallback.
- multicall() partial failures for unreachable nodes.
- stderr text reaches the calling node through the transport in two steps.
- An unreachable calling node never makes run() raise.
- Concurrent invocations keep separate execution contexts.

Conventions
- Test method names follow CamelCase per project convention.
- Transports are plain objects recording every call.
"""

from __future__ import annotations

import io
import os
import threading
import unittest
from contextlib import redirect_stdout, redirect_stderr
from unittest import TestCase, mock

import quorum
from quorum import (
    register_node_finder,
    unregister_node_finder,
    register_transport,
    register_command,
    nodes,
    targets,
    multicall,
    invocation,
    calling_node,
    run,
    text,
    alert,
)
from quorum.faults import NodeUnreachableError
from quorum.rpc import forward_stderr


class RecordingTransport:
    """runs every call locally and remembers (node, function name)."""

    def __init__(self):
        self.calls = []

    def call(self, node, function, /, *args):
        self.calls.append((node, function.__name__))
        return function(*args)


class TestNodes(TestCase):
    """Node finder and multicall."""

    def setUp(self):
        quorum.reset()
        self.enterContext(mock.patch.dict(os.environ, {"QUORUM_NODE": "n1"}))

    def testLocalNodeWithoutFinder(self):
        self.assertEqual(nodes(), ["n1"])

    def testFinderReplacesAndUnregisters(self):
        register_node_finder(lambda: ["a", "b"])
        register_node_finder(lambda: ["n1", "n2", "n1"])
        self.assertEqual(nodes(), ["n1", "n2"])

        self.assertTrue(unregister_node_finder())
        self.assertFalse(unregister_node_finder())
        self.assertEqual(nodes(), ["n1"])

    def testTargetsFollowAllFlag(self):
        register_node_finder(lambda: ["n1", "n2"])

        self.assertEqual(targets(), ["n1"])
        with invocation(("admin", "ring"), {"all": True}):
            self.assertEqual(targets(), ["n1", "n2"])

    def testMulticallReportsDownNodes(self):
        register_node_finder(lambda: ["n1", "n2"])

        with invocation(("admin", "ring"), {"all": True}):
            results, down = multicall(str.upper, "pong")
        self.assertEqual(results, {"n1": "PONG"})
        self.assertEqual(down, ["n2"])

    def testMulticallExplicitNodes(self):
        self.assertEqual(multicall(len, "abc", among=["n2"]), ({}, ["n2"]))


class TestErrorStream(TestCase):
    """stderr delivery to the calling node."""

    def setUp(self):
        quorum.reset()
        self.enterContext(mock.patch.dict(os.environ, {"QUORUM_NODE": "n1"}))
        self.transport = RecordingTransport()
        register_transport(self.transport)

    def testCallerIsInherited(self):
        self.assertEqual(calling_node(), "n1")
        with invocation(caller="ops-1"):
            with invocation(("admin", "status"), {}):
                self.assertEqual(calling_node(), "ops-1")

    def testStderrIsForwardedToCaller(self):
        register_command(["admin", "status"], (), (), lambda path, keys, flags: [text("ok"), alert([text("disk almost full")])])

        stdout, stderr = io.StringIO(), io.StringIO()
        with redirect_stdout(stdout), redirect_stderr(stderr), invocation(caller="ops-1"):
            code = run(["admin", "status"])

        self.assertEqual(code, 0)
        self.assertEqual(self.transport.calls, [("ops-1", "whereis"), ("ops-1", "write")])
        self.assertIn("disk almost full", stderr.getvalue())
        self.assertNotIn("disk almost full", stdout.getvalue())

    def testNothingForwardedWithoutStderrText(self):
        register_command(["admin", "status"], (), (), lambda path, keys, flags: [text("ok")])

        with redirect_stdout(io.StringIO()):
            self.assertEqual(run(["admin", "status"]), 0)
        self.assertEqual(self.transport.calls, [])

    def testUnreachableCallerWithLocalTransport(self):
        quorum.unregister_transport()

        with invocation(caller="elsewhere"):
            with self.assertRaises(NodeUnreachableError):
                forward_stderr("lost\n")

    def testRunReportsUnreachableCaller(self):
        quorum.unregister_transport()
        register_command(["admin", "status"], (), (), lambda path, keys, flags: [text("ok"), alert([text("disk almost full")])])

        stdout, stderr = io.StringIO(), io.StringIO()
        with redirect_stdout(stdout), redirect_stderr(stderr), invocation(caller="elsewhere"):
            code = run(["admin", "status"])

        self.assertEqual(code, 1)
        self.assertIn("ok", stdout.getvalue())
        self.assertEqual(stderr.getvalue(), "error: node 'elsewhere' is not reachable\n")


class TestConcurrentInvocations(TestCase):
    """Each thread sees only its own execution context."""

    def setUp(self):
        quorum.reset()
        self.enterContext(mock.patch.dict(os.environ, {"QUORUM_NODE": "n1"}))
        register_node_finder(lambda: ["n1", "n2", "n3"])

    def testInvocationsDoNotLeakAcrossThreads(self):
        inside = threading.Barrier(2)
        seen = {}
        errors = []

        def operator(caller, everywhere):
            try:
                with invocation(("admin", "ring"), {"all": everywhere}, caller=caller):
                    inside.wait()
                    seen[caller] = (calling_node(), targets())
                    inside.wait()
                seen[caller + "/after"] = calling_node()
            except Exception as error:
                errors.append(error)

        threads = [
            threading.Thread(target=operator, args=("ops-1", True)),
            threading.Thread(target=operator, args=("ops-2", False)),
        ]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        self.assertEqual(errors, [])
        self.assertEqual(seen["ops-1"], ("ops-1", ["n1", "n2", "n3"]))
        self.assertEqual(seen["ops-2"], ("ops-2", ["n1"]))
        self.assertEqual(seen["ops-1/after"], "n1")
        self.assertEqual(seen["ops-2/after"], "n1")
        self.assertEqual(calling_node(), "n1")


if __name__ == "__main__":
    unittest.main()
