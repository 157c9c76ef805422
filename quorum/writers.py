"""
Writer registry: format name → render function.

A writer is a plain callable

    write(payload) -> (stdout_text, stderr_text)

receiving the payload of a status (a sequence of status elements). The pipeline
picks the writer by name; an unregistered name is a configuration error and fails
fast with UnknownFormatError, it never falls back to another format.

The built-in "human", "json" and "csv" writers (see quorum.renderers) are
installed on import and can be replaced like any other writer.
"""
import logging

from .faults import UnknownFormatError, FaultCode, getdoc
from .registry import registry

logger = logging.getLogger(__name__)


def register_writer(name, writer, /):
    """
    Register the writer for a format name; re-registering replaces it.
    """
    if not isinstance(name, str) or not name.strip():
        raise TypeError("register_writer() name must be a non-empty string")
    if not callable(writer):
        raise TypeError("register_writer() writer must be callable")
    registry.writers.insert(name, writer)


def unregister_writer(name, /):
    return registry.writers.delete(name)


def formats():
    """
    the registered format names, sorted.
    """
    return sorted(name for name, _ in registry.writers.snapshot())


def write(payload, format, /):
    """
    Render payload with the writer registered under format.

    Returns
    - (stdout_text, stderr_text)

    Raises
    - UnknownFormatError when no writer is registered under format.
    - TypeError when the writer does not return a pair of strings.
    """
    writer = registry.writers.lookup(format, None)
    if writer is None:
        known = formats()
        raise UnknownFormatError(
            "unknown output format %r" % format,
            input=format,
            hint="use one of: %s" % ", ".join(known) if known else "no writers are registered",
            docs=getdoc(FaultCode.UNKNOWN_FORMAT),
        )

    result = writer(payload)
    if not (isinstance(result, tuple) and len(result) == 2 and all(isinstance(part, str) for part in result)):
        raise TypeError("writer %r must return a (stdout, stderr) pair of strings" % format)
    logger.debug("rendered %d/%d characters with %r", len(result[0]), len(result[1]), format)
    return result


def install_defaults():
    """
    (re)register the built-in writers.
    """
    from .renderers import human, json, csv

    register_writer("human", human)
    register_writer("json", json)
    register_writer("csv", csv)


__all__ = (
    "register_writer",
    "unregister_writer",
    "formats",
    "write",
    "install_defaults",
)
