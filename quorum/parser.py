r"""
Quorum parser: turn the unmatched remainder of argv into validated arguments.

phases (each one a function so the runner can chain them)
- parse(match)
  • split the remainder into positional tokens and raw flags.
  • decide whether '--name value' consumes the next token by looking the name up
    in the global flags first, then in the command's flag spec.
  • under a wildcard flag spec an unknown flag takes the next plain token (not a
    flag, not name=value) as its value, and is True otherwise.
  • reject malformed flag spellings and flags with missing/forbidden values.
- extract_global_flags(parsed)
  • pull '--all', '--format' and '--help' out before the command's own
    validation, so no handler ever reports them as unknown.
  • an unregistered '--format' fails here, before anything is executed.
- validate(parsed)
  • bind positional tokens (and 'name=value' tokens) to the key spec in order.
  • check flags against the flag spec, convert every value to its datatype.

grammar
- flag:     --name | --name=value | --name value | -n | -n value
- key:      value (in declaration order) | name=value
- '--' ends flag parsing; everything after it is positional.

every fault message leads with the ordinal position of the offending token in the
full argument list (“at third position”).
"""
import difflib
import logging
import re
from collections import deque
from collections.abc import Mapping
from typing import NamedTuple

from .commands import is_flag, is_kv
from .faults import *
from .registry import registry
from .specs import WILDCARD, GLOBAL_FLAGS, Flag
from .utils import ordinal

logger = logging.getLogger(__name__)


class Bindings(Mapping):
    """
    read-only mapping of argument name → value.

    overflow carries the extra positional tokens accepted by a wildcard key spec
    (always empty for flags and for declared key specs).
    """
    __slots__ = ("_values", "_overflow")

    def __init__(self, values=(), overflow=()):
        self._values = dict(values)
        self._overflow = tuple(overflow)

    @property
    def overflow(self):
        return self._overflow

    def __getitem__(self, name):
        return self._values[name]

    def __iter__(self):
        return iter(self._values)

    def __len__(self):
        return len(self._values)

    def __repr__(self):
        if self._overflow:
            return f"bindings({self._values!r}, overflow={self._overflow!r})"
        return f"bindings({self._values!r})"


class RawFlag(NamedTuple):
    index: int
    input: str
    spec: Flag | None
    value: str | None


class Parsed(NamedTuple):
    """
    intermediate result between the parsing phases.
    """
    match: object
    positionals: tuple
    flags: tuple
    globals: Bindings = Bindings()


class ParsedArgs(NamedTuple):
    """
    validated arguments, immutable.
    """
    keys: Bindings
    flags: Bindings
    globals: Bindings


def _route(match):
    return " ".join(match.path)


def _lookup(input, flags):
    for spec in GLOBAL_FLAGS:
        if input in spec.names:
            return spec
    if flags == WILDCARD:
        return None
    for spec in flags:
        if input in spec.names:
            return spec
    return None


def parse(match, /):
    """
    split match.remainder into positionals and raw flags.

    Raises
    - MalformedTokenError, FlagAssignmentError, FlagValueRequiredError
    """
    positionals = []
    flags = []
    tokens = deque(enumerate(match.remainder, len(match.path) + 1))
    terminated = False

    while tokens:
        index, token = tokens.popleft()

        if terminated or not is_flag(token):
            positionals.append((index, token))
            continue

        if token == "--":
            terminated = True
            continue

        shape = re.fullmatch(r"(?P<input>--[^\W\d_](-?[^\W_]+)*|-[^\W\d_])(=(?P<value>.*))?", token, re.DOTALL)
        if not shape:
            raise MalformedTokenError(
                "bad form of flag %r at %s position" % (token, ordinal(index)),
                input=token,
                index=index,
                hint="use --name, --name=value or a single-letter -n (run '%s --help')" % _route(match),
                docs=getdoc(FaultCode.MALFORMED_TOKEN),
            )

        input, value = shape["input"], shape["value"]
        spec = _lookup(input, match.entry.flags)

        if spec is not None and spec.presence and value is not None:
            raise FlagAssignmentError(
                "flag %r at %s position cannot have a value" % (input, ordinal(index)),
                input=input,
                index=index,
                hint="remove everything from '=' (for example: %s)" % input,
                docs=getdoc(FaultCode.FLAG_ASSIGNMENT),
            )

        if spec is not None and not spec.presence and value is None:
            if not tokens or is_flag(tokens[0][1]):
                raise FlagValueRequiredError(
                    "flag %r at %s position requires a value" % (input, ordinal(index)),
                    input=input,
                    index=index,
                    hint="pass it inline (%s=<value>) or after a space (%s <value>)" % (input, input),
                    docs=getdoc(FaultCode.FLAG_VALUE_REQUIRED),
                )
            value = tokens.popleft()[1]

        # under a wildcard flag spec "--level 3" binds like "--level=3"
        if spec is None and value is None and match.entry.flags == WILDCARD:
            if tokens and not is_flag(tokens[0][1]) and not is_kv(tokens[0][1]):
                value = tokens.popleft()[1]

        flags.append(RawFlag(index, input, spec, value))

    return Parsed(match, tuple(positionals), tuple(flags))


def extract_global_flags(parsed, /):
    """
    move the global flags out of parsed.flags into parsed.globals.

    Raises
    - DuplicatedFlagError when a global flag is repeated.
    - UnknownFormatError when '--format' names no registered writer.
    """
    globals = {}
    remaining = []

    for flag in parsed.flags:
        if flag.spec not in GLOBAL_FLAGS:
            remaining.append(flag)
            continue
        if flag.spec.name in globals:
            raise DuplicatedFlagError(
                "flag %r at %s position was already provided" % (flag.input, ordinal(flag.index)),
                input=flag.input,
                index=flag.index,
                hint="keep a single %s" % flag.spec.names[0],
                docs=getdoc(FaultCode.DUPLICATED_FLAG),
            )
        globals[flag.spec.name] = True if flag.spec.presence else flag.value

    if "format" in globals and globals["format"] not in registry.writers:
        known = sorted(name for name, _ in registry.writers.snapshot())
        raise UnknownFormatError(
            "unknown output format %r" % globals["format"],
            input=globals["format"],
            hint="use one of: %s" % ", ".join(known) if known else "no writers are registered",
            docs=getdoc(FaultCode.UNKNOWN_FORMAT),
        )

    return parsed._replace(flags=tuple(remaining), globals=Bindings(globals))


def _convert(spec, raw, input, index):
    try:
        return spec.convert(raw)
    except LookupError:
        raise InvalidChoiceError(
            "invalid choice %r for %s at %s position" % (raw, input, ordinal(index)),
            input=input,
            index=index,
            value=raw,
            hint="choose one of: %s" % ", ".join(map(str, sorted(spec.choices, key=str))),
            docs=getdoc(FaultCode.INVALID_CHOICE),
        ) from None
    except ValueError as error:
        raise InvalidValueError(
            "invalid %s value %r for %s at %s position" % (spec.datatype, raw, input, ordinal(index)),
            input=input,
            index=index,
            value=raw,
            hint=str(error),
            docs=getdoc(FaultCode.INVALID_VALUE),
        ) from None


def _validate_keys(match, positionals):
    specs = match.entry.keys
    wildcard = specs == WILDCARD
    named = {} if wildcard else {spec.name: spec for spec in specs}
    pending = deque(() if wildcard else specs)
    keys = {}
    overflow = []

    def bind(name, value, index):
        if name in keys:
            raise DuplicatedKeyError(
                "key %r at %s position was already provided" % (name, ordinal(index)),
                input=name,
                index=index,
                hint="give each key once, either by position or as %s=<value>" % name,
                docs=getdoc(FaultCode.DUPLICATED_KEY),
            )
        keys[name] = value

    for index, token in positionals:
        if is_kv(token):
            name, _, raw = token.partition("=")
            if wildcard:
                bind(name, raw, index)
                continue
            if name in named:
                bind(name, _convert(named[name], raw, name, index), index)
                continue

        if wildcard:
            overflow.append(token)
            continue

        while pending and pending[0].name in keys:
            pending.popleft()

        if not pending:
            if is_kv(token):
                raise UnknownKeyError(
                    "unknown key %r at %s position" % (token.partition("=")[0], ordinal(index)),
                    input=token,
                    index=index,
                    hint="known keys: %s" % (", ".join(named) or "none"),
                    docs=getdoc(FaultCode.UNKNOWN_KEY),
                )
            raise UnexpectedKeyError(
                "unexpected argument %r at %s position" % (token, ordinal(index)),
                input=token,
                index=index,
                hint="remove this extra value or run '%s --help' to see the expected usage" % _route(match),
                docs=getdoc(FaultCode.UNEXPECTED_KEY),
            )

        spec = pending.popleft()
        bind(spec.name, _convert(spec, token, spec.name, index), index)

    if wildcard:
        return Bindings(keys, overflow)

    if missing := [spec.name for spec in specs if spec.required and spec.name not in keys]:
        raise MissingKeysError(
            "missing required %s %s" % ("key" if len(missing) == 1 else "keys", ", ".join(map(repr, missing))),
            input=tuple(missing),
            hint="run '%s --help' to see the expected order" % _route(match),
            docs=getdoc(FaultCode.MISSING_KEYS),
        )

    for spec in specs:
        keys.setdefault(spec.name, spec.default)
    return Bindings(keys)


def _validate_flags(match, raw):
    specs = match.entry.flags
    wildcard = specs == WILDCARD
    flags = {}

    for flag in raw:
        if flag.spec is None:
            if not wildcard:
                names = [name for spec in specs for name in spec.names]
                suggestions = difflib.get_close_matches(flag.input, names, 5)
                if suggestions:
                    hint = "did you mean %r? you can also run '%s --help' to see all flags" % (suggestions[0], _route(match))
                else:
                    hint = "run '%s --help' to see all available flags" % _route(match)
                raise UnknownFlagError(
                    "unknown flag %r at %s position" % (flag.input, ordinal(flag.index)),
                    input=flag.input,
                    index=flag.index,
                    suggestions=suggestions,
                    hint=hint,
                    docs=getdoc(FaultCode.UNKNOWN_FLAG),
                )
            name = flag.input.lstrip("-")
            value = True if flag.value is None else flag.value
        else:
            name = flag.spec.name
            value = True if flag.spec.presence else _convert(flag.spec, flag.value, flag.input, flag.index)

        if name in flags:
            raise DuplicatedFlagError(
                "flag %r at %s position was already provided" % (flag.input, ordinal(flag.index)),
                input=flag.input,
                index=flag.index,
                hint="keep a single %s; each flag can be specified only once" % flag.input,
                docs=getdoc(FaultCode.DUPLICATED_FLAG),
            )
        flags[name] = value

    if wildcard:
        return Bindings(flags)

    for spec in specs:
        if spec.name in flags:
            continue
        if spec.required:
            raise FlagValueRequiredError(
                "flag %r is required" % spec.names[0],
                input=spec.names[0],
                hint="add %s <value> to the command" % spec.names[0],
                docs=getdoc(FaultCode.FLAG_VALUE_REQUIRED),
            )
        if spec.default is not None:
            flags[spec.name] = spec.default
    return Bindings(flags)


def validate(parsed, /):
    """
    bind and convert keys and flags; returns ParsedArgs.

    Raises
    - MissingKeysError, UnexpectedKeyError, UnknownKeyError, DuplicatedKeyError,
      UnknownFlagError, DuplicatedFlagError, FlagValueRequiredError,
      InvalidValueError, InvalidChoiceError
    """
    keys = _validate_keys(parsed.match, parsed.positionals)
    flags = _validate_flags(parsed.match, parsed.flags)
    logger.debug("validated %s: keys=%r flags=%r globals=%r", _route(parsed.match), keys, flags, parsed.globals)
    return ParsedArgs(keys, flags, parsed.globals)


__all__ = (
    "GLOBAL_FLAGS",
    "Bindings",
    "Parsed",
    "ParsedArgs",
    "parse",
    "extract_global_flags",
    "validate",
)
