"""
Usage texts, looked up by longest registered prefix.

Usage is independent of command registration: a path may have usage text without a
matching command (e.g. a group like "admin cluster") and a command may have none.
The text is either a string or a zero-argument callable producing one, so plugins
can build expensive help lazily.
"""
import logging

from .faults import UsageNotFoundError, FaultCode, getdoc
from .registry import registry

logger = logging.getLogger(__name__)

FALLBACK = "no usage available\n"


def _path(path):
    if isinstance(path, str) or not all(isinstance(segment, str) for segment in path):
        raise TypeError("usage path must be a sequence of strings")
    return tuple(path)


def register_usage(path, usage, /):
    """
    Register usage text for a path prefix; re-registering replaces it.
    """
    if not isinstance(usage, str) and not callable(usage):
        raise TypeError("register_usage() usage must be a string or a callable")
    registry.usage.insert(_path(path), usage)


def unregister_usage(path, /):
    return registry.usage.delete(_path(path))


def resolve(path, /):
    """
    Return the usage text of the longest registered prefix of path.

    Raises
    - UsageNotFoundError when no registered prefix matches.
    """
    path = _path(path)
    for length in range(len(path), -1, -1):
        usage = registry.usage.lookup(path[:length], None)
        if usage is not None:
            return usage() if callable(usage) else usage
    raise UsageNotFoundError(
        "no usage available for %r" % " ".join(path),
        input=path,
        docs=getdoc(FaultCode.USAGE_NOT_FOUND),
    )


def describe(path, fallback=FALLBACK, /):
    """
    resolve() without the fault: return fallback when nothing matches.
    """
    try:
        return resolve(path)
    except UsageNotFoundError:
        logger.debug("no usage for %r", tuple(path))
        return fallback


__all__ = (
    "FALLBACK",
    "register_usage",
    "unregister_usage",
    "resolve",
    "describe",
)
