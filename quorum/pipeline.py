"""
Output pipeline: from argv to rendered text on the right streams.

run(argv)
  match → parse → extract global flags → validate → execute → output
  (--help stops after the global flags and prints the usage text)

output(result, path, format)
- ErrorStatus(fault)       → the fault wrapped in an alert, rendered by "human",
                             exit code 1 whatever format was requested.
- ExitStatus(p, code, f)   → rendered by the writer named f, exit code `code`.
- a bare payload           → rendered by format (default "human"), exit code 0.
- USAGE                    → usage text of the path (or a fallback), exit code 0.

Delivery
- stdout text is written to this process' standard output.
- stderr text is forwarded to the error stream of the node that issued the command
  (see rpc.forward_stderr); on a single node that is this process' stderr.

An unregistered format name is never downgraded to another writer: output() raises
UnknownFormatError and run() reports it as an error (exit code 1). A writer that
raises or returns something other than two strings becomes a RenderError, and a
calling node that cannot be reached falls back to this process' stderr.
"""
import logging
import sys

from .commands import match, attempted
from .dispatcher import execute, shape
from .faults import CommandException, RenderError, FaultCode, getdoc
from .parser import parse, extract_global_flags, validate
from .rpc import calling_node, forward_stderr
from .status import ErrorStatus, USAGE, Alert
from .usage import describe
from .utils import Unset, coalesce
from .writers import write

logger = logging.getLogger(__name__)


def deliver(stdout, stderr, /):
    """
    write stdout locally and stderr to the calling node.
    """
    if stdout:
        sys.stdout.write(stdout)
        sys.stdout.flush()
    forward_stderr(stderr)


def output(result, path=(), format=Unset, /):
    """
    render a handler result and deliver it; returns the exit code.

    Raises
    - UnknownFormatError when the requested writer is not registered.
    """
    if isinstance(result, ErrorStatus):
        deliver(*write((Alert((result.fault,)),), "human"))
        return 1

    if result is USAGE:
        deliver(describe(path), "")
        return 0

    status = shape(result, coalesce(format, "human"))
    deliver(*write(status.payload, status.format))
    return status.code


def fail(fault, path=(), /):
    """
    report a fault raised while rendering or delivering a result; returns 1.

    The fault goes through output() like any ErrorStatus. When that fails as well
    (broken human writer, unreachable calling node) its message is written to this
    process' stderr instead.
    """
    try:
        return output(ErrorStatus(fault), path)
    except Exception:
        logger.error("cannot deliver %r to %s", fault, calling_node(), exc_info=True)
    sys.stderr.write("error: %s\n" % fault.message)
    sys.stderr.flush()
    return 1


def run(argv, /):
    """
    route, validate, execute and print one command line; returns the exit code.

    No exception escapes: faults from any phase, including rendering and stderr
    forwarding, end as an error report with exit code 1.
    """
    argv = tuple(argv)
    path = attempted(argv)
    try:
        found = match(argv)
        path = found.path
        parsed = extract_global_flags(parse(found))
        if parsed.globals.get("help"):
            result = USAGE
        else:
            result = execute(found, validate(parsed))
    except CommandException as fault:
        logger.debug("%r rejected: %r", argv, fault)
        result = ErrorStatus(fault)

    try:
        return output(result, path)
    except CommandException as error:
        logger.debug("%r cannot be rendered: %r", argv, error)
        fault = error
    except Exception as error:
        logger.error("rendering the result of %r failed", argv, exc_info=True)
        if isinstance(result, ErrorStatus):
            fault = result.fault
        else:
            fault = RenderError(
                "output could not be rendered: %s" % error,
                input=path,
                hint="check the writer registered for the requested format",
                docs=getdoc(FaultCode.RENDER_FAILED),
            )
    return fail(fault, path)


__all__ = (
    "deliver",
    "output",
    "fail",
    "run",
)
