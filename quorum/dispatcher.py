"""
Execution dispatcher: call the matched handler and shape whatever it returns.

Handlers are plain callables

    handler(path, keys, flags) -> status

where path is the matched prefix of argv, keys and flags the validated bindings.
The call is synchronous and runs inside rpc.invocation(), so the handler (and the
helpers it calls, e.g. nodes.multicall) can see the global flags.

Shaping
- USAGE                 → USAGE
- ExitStatus            → kept (its format defaults to the preferred format)
- ErrorStatus           → kept
- anything else         → ExitStatus(payload, 0, preferred format)
- CommandException      → ErrorStatus(fault)
- any other exception   → ErrorStatus(HandlerError), logged with its traceback

The preferred format is the '--format' global flag, or "human".
"""
import logging

from .faults import CommandException, HandlerError, FaultCode, getdoc
from .rpc import invocation
from .status import ExitStatus, ErrorStatus, USAGE, flatten
from .utils import Unset

logger = logging.getLogger(__name__)


def preferred(globals, /):
    return globals.get("format") or "human"


def _failure(route, error):
    return ErrorStatus(HandlerError(
        "command %r failed: %s" % (route, error),
        input=route,
        hint="check the logs of the node running the command",
        docs=getdoc(FaultCode.HANDLER_ERROR),
    ))


def shape(result, format, /):
    """
    normalize a handler result into ExitStatus, ErrorStatus or USAGE.

    Raises
    - TypeError on a malformed status (bad exit code, unsupported payload element).
    """
    if result is USAGE or isinstance(result, ErrorStatus):
        if isinstance(result, ErrorStatus) and not isinstance(result.fault, CommandException):
            raise TypeError("error status must carry a command exception")
        return result
    if isinstance(result, ExitStatus):
        if not isinstance(result.code, int) or isinstance(result.code, bool) or result.code < 0:
            raise TypeError("exit status code must be a non-negative integer, got %r" % (result.code,))
        return ExitStatus(tuple(flatten(result.payload)), result.code, format if result.format is Unset else result.format)
    return ExitStatus(tuple(flatten(result)), 0, format)


def execute(match, parsed, /):
    """
    run the handler of match with the validated arguments of parsed.
    """
    route = " ".join(match.path)
    if parsed.globals.get("help"):
        logger.debug("usage requested for %s", route)
        return USAGE

    with invocation(match.path, parsed.globals):
        try:
            result = match.handler(match.path, parsed.keys, parsed.flags)
        except CommandException as fault:
            logger.debug("%s raised %r", route, fault)
            return ErrorStatus(fault)
        except Exception as error:
            logger.error("handler of %s failed", route, exc_info=True)
            return _failure(route, error)

    try:
        return shape(result, preferred(parsed.globals))
    except TypeError as error:
        logger.error("handler of %s returned a malformed status: %s", route, error)
        return _failure(route, error)


__all__ = (
    "preferred",
    "shape",
    "execute",
)
