"""
Remote calls and the per-invocation execution context.

The framework never defines how calls travel between nodes; it only needs a
transport exposing

    call(node, function, /, *args) -> result

and raising NodeUnreachableError when a node cannot be reached. The default
LocalTransport runs functions in-process for the local node and treats every other
node as unreachable; a cluster deployment registers its own transport.

Execution context
- invocation(...) binds, for the duration of one command, the node that issued it
  (the caller), the invoked path and the global flags. A server executing commands
  on behalf of remote operators enters invocation(caller=<their node>) so output
  routing finds its way back.
- the context lives in a ContextVar, so concurrent invocations in one process do not
  see each other's state.

Error stream forwarding
- stdout of a remotely executed command is redirected by the transport; stderr is
  not. forward_stderr() therefore performs an explicit two-step protocol:
  (1) resolve the calling node from the execution context,
  (2) ask that node for its error stream, then write the text to it.
"""
import contextvars
import logging
import os
import socket
import sys
from contextlib import contextmanager
from types import MappingProxyType
from typing import NamedTuple, Protocol

from .faults import NodeUnreachableError, FaultCode, getdoc
from .registry import registry
from .utils import Unset

logger = logging.getLogger(__name__)


def local():
    """
    identity of this node: $QUORUM_NODE, or the host name.
    """
    return os.environ.get("QUORUM_NODE") or socket.gethostname()


class Invocation(NamedTuple):
    caller: str
    path: tuple
    globals: MappingProxyType


_invocation = contextvars.ContextVar("quorum.invocation", default=None)


def current():
    """
    the active Invocation, or None outside of a command.
    """
    return _invocation.get()


def calling_node():
    """
    the node that issued the running command (the local node outside of a command).
    """
    invocation = _invocation.get()
    return invocation.caller if invocation is not None else local()


@contextmanager
def invocation(path=(), globals=None, /, caller=Unset):
    """
    bind the execution context of one command.

    Without an explicit caller the enclosing invocation's caller is kept (the local
    node at top level).
    """
    if caller is Unset:
        caller = calling_node()
    token = _invocation.set(Invocation(
        caller,
        tuple(path),
        MappingProxyType(dict(globals or {})),
    ))
    try:
        yield _invocation.get()
    finally:
        _invocation.reset(token)


class Transport(Protocol):
    def call(self, node, function, /, *args): ...


class LocalTransport:
    """
    in-process transport: only the local node is reachable.
    """

    def call(self, node, function, /, *args):
        if node != local():
            raise NodeUnreachableError(
                "node %r is not reachable" % node,
                input=node,
                hint="register a transport able to reach remote nodes",
                docs=getdoc(FaultCode.NODE_UNREACHABLE),
            )
        return function(*args)

    def __repr__(self):
        return "local-transport()"


def register_transport(transport, /):
    """
    Install the transport used for every remote call (replaces the previous one).
    """
    if not callable(getattr(transport, "call", None)):
        raise TypeError("register_transport() argument must implement call(node, function, *args)")
    registry.transport.set(transport)


def unregister_transport():
    return registry.transport.unset()


def transport():
    """
    the registered transport, or a LocalTransport when none is registered.
    """
    active = registry.transport.get()
    return LocalTransport() if active is Unset else active


def call(node, function, /, *args):
    """
    run function(*args) on node through the active transport.
    """
    logger.debug("calling %s on %s", getattr(function, "__qualname__", function), node)
    return transport().call(node, function, *args)


def whereis(name, /):
    """
    this node's standard stream registered under name ("stdout" or "stderr").
    """
    match name:
        case "stdout":
            return sys.stdout
        case "stderr":
            return sys.stderr
    raise LookupError("no stream named %r" % name)


def write(stream, text, /):
    stream.write(text)
    stream.flush()


def forward_stderr(text, /):
    """
    write text to the error stream of the node that issued the running command.
    """
    if not text:
        return
    node = calling_node()
    stream = call(node, whereis, "stderr")
    call(node, write, stream, text)


__all__ = (
    "local",
    "Invocation",
    "current",
    "calling_node",
    "invocation",
    "Transport",
    "LocalTransport",
    "register_transport",
    "unregister_transport",
    "transport",
    "call",
    "whereis",
    "write",
    "forward_stderr",
)
