"""
Quorum command layer: register command patterns and match argument lists.

What this module provides
- Pattern segments: Literal("status") and the Wildcard marker ("*" when registering).
- register_command / unregister_command: bind a pattern to a handler, a key spec
  and a flag spec; re-registering a pattern replaces the previous entry.
- command(...): decorator form of register_command.
- match(argv): find the most specific pattern matching a prefix of argv.

Specificity
- a pattern matches when every segment is either a literal equal to the token at
  the same position or a wildcard over a plain token (wildcards never swallow
  flags or key=value tokens).
- the winner has the most literal segments before its first wildcard; ties are
  broken by the longest pattern. Exact literal paths therefore always beat
  overlapping wildcard patterns of the same length.

Quick start
    from quorum import command, Key, Flag, text

    @command(["admin", "join", "*"], flags=[Flag("force", "f")])
    def join(path, keys, flags):
        return [text("joining %s" % path[2])]
"""
import logging
import re
from typing import NamedTuple

from .faults import UnknownCommandError, FaultCode, getdoc
from .registry import registry
from .specs import keyspec, flagspec
from .usage import describe
from .utils import rename

logger = logging.getLogger(__name__)


class Literal(NamedTuple):
    text: str

    def __repr__(self):
        return repr(self.text)


Wildcard = type("wildcard-type", (), {
    "__slots__": (),
    "__repr__": lambda self: "'*'",
    "__reduce__": lambda self: "Wildcard",
    "__doc__": "segment marker matching any single plain token",
})()


class Entry(NamedTuple):
    pattern: tuple
    keys: object
    flags: object
    handler: object


class Match(NamedTuple):
    entry: Entry
    path: tuple
    remainder: tuple

    @property
    def handler(self):
        return self.entry.handler


def is_flag(token, /):
    """
    True for tokens that look like a flag ('-x', '--name', '--name=value').

    A lone '-' and negative numbers ('-5', '-0.5') are plain values.
    """
    return token.startswith("-") and token != "-" and not re.fullmatch(r"-\d[\d_.]*", token)


def is_kv(token, /):
    """
    True for 'name=value' tokens (name being a word, dotted names allowed).
    """
    return re.fullmatch(r"(?!\d)\w[\w.\-]*=.*", token, re.DOTALL) is not None


def pattern(segments, /):
    """
    turn a user-supplied list of strings (with "*" for wildcards) into a Pattern.
    """
    if isinstance(segments, str):
        raise TypeError("command pattern must be a sequence of strings, not a string")
    result = []
    for segment in segments:
        if segment == "*" or segment is Wildcard:
            result.append(Wildcard)
        elif isinstance(segment, Literal):
            result.append(segment)
        elif isinstance(segment, str):
            if not segment or is_flag(segment) or is_kv(segment) or segment != segment.strip():
                raise ValueError(f"command pattern segment {segment!r} is not a plain word")
            result.append(Literal(segment))
        else:
            raise TypeError(f"command pattern segments must be strings, got {segment!r}")
    if not result:
        raise ValueError("command pattern must have at least one segment")
    return tuple(result)


def specificity(pattern, /):
    """
    score used to order matching patterns.

    Compared in order: literal prefix length, pattern length, number of literal
    segments, then literal positions read left to right (a literal beats a
    wildcard at the first position where two patterns differ). Two distinct
    patterns matching the same argv never score equal.
    """
    prefix = 0
    for segment in pattern:
        if segment is Wildcard:
            break
        prefix += 1
    literals = tuple(int(segment is not Wildcard) for segment in pattern)
    return prefix, len(pattern), sum(literals), literals


def register_command(segments, keys, flags, handler, /):
    """
    Register a handler for a command pattern.

    Parameters
    - segments: list of strings; "*" marks a wildcard segment.
    - keys: "_" or an iterable of Key / key names (positional arguments).
    - flags: "_" or an iterable of Flag / flag names.
    - handler: callable(path, keys, flags) returning a status.

    Errors
    - TypeError/ValueError on a malformed pattern, spec or non-callable handler.
    """
    if not callable(handler):
        raise TypeError("register_command() handler must be callable")
    entry = Entry(key := pattern(segments), keyspec(keys), flagspec(flags), handler)
    if registry.commands.insert(key, entry):
        logger.info("command %s re-registered, previous handler replaced", _display(key))


def unregister_command(segments, /):
    """
    Remove the handler of a command pattern; False when none was registered.
    """
    return registry.commands.delete(pattern(segments))


def command(segments, /, keys=(), flags=()):
    """
    Decorator form of register_command.

        @command(["admin", "status"])
        def status(path, keys, flags): ...
    """
    @rename("command")
    def decorator(handler):
        register_command(segments, keys, flags, handler)
        return handler
    return decorator


def _matches(pattern, argv):
    for segment, token in zip(pattern, argv):
        if segment is Wildcard:
            if is_flag(token) or is_kv(token):
                return False
        elif segment.text != token:
            return False
    return True


def _display(pattern):
    return " ".join("*" if segment is Wildcard else segment.text for segment in pattern)


def attempted(argv, /):
    """
    the command path an operator meant: the tokens before the first flag or key=value.
    """
    path = []
    for token in argv:
        if is_flag(token) or is_kv(token):
            break
        path.append(token)
    return tuple(path)


def match(argv, /):
    """
    Find the most specific registered pattern matching a prefix of argv.

    Returns
    - Match(entry, path, remainder): path is the matched prefix of argv, remainder
      the tokens left for the parser.

    Raises
    - UnknownCommandError naming the attempted path (with its usage text, if any).
    """
    argv = tuple(argv)
    best = None
    for key, entry in registry.commands.snapshot():
        if len(key) > len(argv) or not _matches(key, argv):
            continue
        if best is None or specificity(key) > specificity(best.pattern):
            best = entry

    if best is None:
        path = attempted(argv)
        route = " ".join(path) or "(empty)"
        logger.debug("no command matches %r", argv)
        raise UnknownCommandError(
            "unknown command %r" % route,
            input=path,
            hint="run '%s --help' to see the available commands" % (path[0] if path else "<script>"),
            usage=describe(path, None),
            docs=getdoc(FaultCode.UNKNOWN_COMMAND),
        )

    logger.debug("%r matched command %s", argv, _display(best.pattern))
    return Match(best, argv[:len(best.pattern)], argv[len(best.pattern):])


__all__ = (
    "Literal",
    "Wildcard",
    "Entry",
    "Match",
    "is_flag",
    "is_kv",
    "pattern",
    "specificity",
    "register_command",
    "unregister_command",
    "command",
    "attempted",
    "match",
)
