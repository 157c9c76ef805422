"""
Cluster membership and fan-out.

RPC calls made for the '--all' global flag need the list of nodes to contact. The
transport's notion of connected nodes only covers nodes that are currently up, and
an operator wants to hear about the ones that are down too, so the application
registers a node finder returning every cluster member.

Only one node finder is active at a time: registering replaces it. Without one the
cluster is just the local node.
"""
import logging

from .faults import NodeUnreachableError
from .registry import registry
from .rpc import call, current, local
from .utils import Unset

logger = logging.getLogger(__name__)


def register_node_finder(finder, /):
    """
    Install the callable returning the cluster member nodes.
    """
    if not callable(finder):
        raise TypeError("register_node_finder() argument must be callable")
    registry.finder.set(finder)


def unregister_node_finder():
    return registry.finder.unset()


def nodes():
    """
    every cluster member according to the node finder (the local node without one).
    """
    finder = registry.finder.get()
    if finder is Unset:
        return [local()]
    return list(dict.fromkeys(finder()))


def targets():
    """
    the nodes the running command should act on: all of them when it was invoked
    with --all, otherwise the local node.
    """
    invocation = current()
    if invocation is not None and invocation.globals.get("all"):
        return nodes()
    return [local()]


def multicall(function, /, *args, among=Unset):
    """
    call function(*args) on each target node.

    Returns
    - (results, down): results maps each reachable node to its result (in node
      order); down lists the nodes that could not be reached.

    Exceptions raised by function itself are not caught: a failing node fails the
    command. Only unreachable nodes are reported as a partial failure.
    """
    results = {}
    down = []
    for node in (targets() if among is Unset else among):
        try:
            results[node] = call(node, function, *args)
        except NodeUnreachableError:
            logger.warning("node %s is unreachable", node)
            down.append(node)
    return results, down


__all__ = (
    "register_node_finder",
    "unregister_node_finder",
    "nodes",
    "targets",
    "multicall",
)
