"""
Quorum faults (errors) and rendering.

Scope
- FaultCode: canonical, stable numeric identifiers for every user-facing failure.
  Codes are grouped by domain (routing, validation, handler, config, rendering,
  usage) to keep messages consistent and logs searchable.
- CommandException: base type that carries a message + options and knows how to
  render itself through the rich protocol (used by the human writer).
- getdoc(): optional description lookup for a code from the host application.

UX goals
- Position-first messages: validation faults include the ordinal position of the
  offending token (“at third position”).
- Soft but technical language: short titles, one-sentence bodies, a single hint.

Integration
- The matcher and parser raise these faults; the pipeline turns them into an error
  status that is always rendered by the human writer with exit code 1.
- Handlers may raise any CommandException subclass to control the rendered title
  and hint; any other exception is wrapped into HandlerError.
"""
from collections import defaultdict
from enum import IntEnum
from types import MappingProxyType

from rich.console import Group
from rich.text import Text

from .utils import Unset


class FaultCode(IntEnum):
    """
    canonical fault codes used across the framework (stable identifiers).

    grouping (by high-level domain)
    - routing (111 0x)
      • UNKNOWN_COMMAND
    - validation of flags (111 1x)
      • MALFORMED_TOKEN, UNKNOWN_FLAG, FLAG_ASSIGNMENT, DUPLICATED_FLAG,
        FLAG_VALUE_REQUIRED
    - validation of keys and values (111 2x)
      • UNEXPECTED_KEY, INVALID_CHOICE, MISSING_KEYS, UNKNOWN_KEY,
        DUPLICATED_KEY, INVALID_VALUE
    - handler (111 3x)
      • HANDLER_ERROR, NODE_UNREACHABLE
    - config (111 5x)
      • CONFIG_NOT_WHITELISTED, INVALID_CONFIG_KEYS, UNKNOWN_CONFIG_KEY
    - rendering (111 6x)
      • UNKNOWN_FORMAT, RENDER_FAILED
    - usage (111 7x)
      • USAGE_NOT_FOUND
    """
    # --- routing ---
    UNKNOWN_COMMAND        = 11101

    # --- flags ---
    MALFORMED_TOKEN        = 11111
    UNKNOWN_FLAG           = 11112
    FLAG_ASSIGNMENT        = 11113
    DUPLICATED_FLAG        = 11115
    FLAG_VALUE_REQUIRED    = 11117

    # --- keys and values ---
    UNEXPECTED_KEY         = 11121
    INVALID_CHOICE         = 11124
    MISSING_KEYS           = 11125
    UNKNOWN_KEY            = 11126
    DUPLICATED_KEY         = 11127
    INVALID_VALUE          = 11128

    # --- handler ---
    HANDLER_ERROR          = 11131
    NODE_UNREACHABLE       = 11132

    # --- config ---
    CONFIG_NOT_WHITELISTED = 11151
    INVALID_CONFIG_KEYS    = 11152
    UNKNOWN_CONFIG_KEY     = 11153

    # --- rendering ---
    UNKNOWN_FORMAT         = 11161
    RENDER_FAILED          = 11162

    # --- usage ---
    USAGE_NOT_FOUND        = 11171

    def normalize(self):
        """
        return a host-normalized string for this code.

        the host application can provide a __codes__ mapping in __main__
        to override numeric ids with friendlier labels.
        """
        return str(getattr(__import__("__main__"), "__codes__", {}).get(self, self.value))


class CommandException(Exception):
    """
    base fault: a message plus free-form options.

    well-known options
    - title: short headline shown in the rendered header.
    - code: a FaultCode.
    - hint: one actionable sentence.
    - colorful: style the rendering (off by default, writers produce plain text).

    subclasses declare their default title/code as class attributes so faults can
    be raised with only a message in handler code.
    """
    title = "command failed"
    code = FaultCode.HANDLER_ERROR

    def __init__(self, message=Unset, /, **options):
        if not isinstance(message, str) and message is not Unset:
            raise TypeError("fault message must be a string")
        super().__init__(message if message is not Unset else self.title)
        self.message = message if message is not Unset else self.title
        self.options = MappingProxyType({"title": self.title, "code": self.code} | options)

    def __getattr__(self, name):
        try:
            return self.__dict__["options"][name]
        except KeyError:
            raise AttributeError(name) from None

    def __rich__(self):
        main = __import__("__main__")
        colorful = self.options.get("colorful", False)

        styles = defaultdict(str, {
            "prog-name": "bold #E6E6F0",
            "code": "bold #00E5FF",
            "error-title": "bold #FF4DA6",
            "error-message": "#C8C8D0",
            "hint-arrow": "#9CE19C dim",
            "hint": "italic #9CE19C",
        } | getattr(main, "__styles__", {}))

        def text(fragment, style):
            if not fragment:
                return Text("")
            return Text(str(fragment), styles[style] if colorful else "")

        prog = text(getattr(main, "__prog__", self.options.get("prog", "quorum")), "prog-name")
        header = Text.assemble(
            "[ ",
            prog,
            " — ",
            text(self.options["code"].normalize(), "code"),
            " | ",
            text(str(self.options["title"]).title(), "error-title"),
            " ]",
        )
        lines = [header, text(self.message, "error-message")]
        if hint := self.options.get("hint"):
            lines.append(Text.assemble(text(" → ", "hint-arrow"), text(hint, "hint")))
        if usage := self.options.get("usage"):
            lines.append(Text(str(usage).rstrip("\n")))
        return Group(*lines)

    def __replace__(self, *unused, **overrides):
        assert not unused, "positional arguments are not allowed"
        return type(self)(self.message, **{**self.options, **overrides})


class UnknownCommandError(CommandException):
    title = "unknown command"
    code = FaultCode.UNKNOWN_COMMAND


class MalformedTokenError(CommandException):
    title = "malformed flag"
    code = FaultCode.MALFORMED_TOKEN


class UnknownFlagError(CommandException):
    title = "unknown flag"
    code = FaultCode.UNKNOWN_FLAG


class FlagAssignmentError(CommandException):
    title = "flag cannot take a value"
    code = FaultCode.FLAG_ASSIGNMENT


class DuplicatedFlagError(CommandException):
    title = "duplicated flag"
    code = FaultCode.DUPLICATED_FLAG


class FlagValueRequiredError(CommandException):
    title = "flag value required"
    code = FaultCode.FLAG_VALUE_REQUIRED


class UnexpectedKeyError(CommandException):
    title = "unexpected argument"
    code = FaultCode.UNEXPECTED_KEY


class InvalidChoiceError(CommandException):
    title = "invalid choice"
    code = FaultCode.INVALID_CHOICE


class MissingKeysError(CommandException):
    title = "missing arguments"
    code = FaultCode.MISSING_KEYS


class UnknownKeyError(CommandException):
    title = "unknown key"
    code = FaultCode.UNKNOWN_KEY


class DuplicatedKeyError(CommandException):
    title = "duplicated key"
    code = FaultCode.DUPLICATED_KEY


class InvalidValueError(CommandException):
    title = "invalid value"
    code = FaultCode.INVALID_VALUE


class HandlerError(CommandException):
    title = "command failed"
    code = FaultCode.HANDLER_ERROR


class NodeUnreachableError(CommandException):
    title = "node unreachable"
    code = FaultCode.NODE_UNREACHABLE


class ConfigNotWhitelistedError(CommandException):
    title = "setting not allowed"
    code = FaultCode.CONFIG_NOT_WHITELISTED


class InvalidConfigKeysError(CommandException):
    title = "invalid config keys"
    code = FaultCode.INVALID_CONFIG_KEYS


class UnknownConfigKeyError(CommandException):
    title = "unknown config key"
    code = FaultCode.UNKNOWN_CONFIG_KEY


class UnknownFormatError(CommandException):
    title = "unknown output format"
    code = FaultCode.UNKNOWN_FORMAT


class RenderError(CommandException):
    title = "output could not be rendered"
    code = FaultCode.RENDER_FAILED


class UsageNotFoundError(CommandException):
    title = "no usage available"
    code = FaultCode.USAGE_NOT_FOUND


def getdoc(code, /):
    """
    optional documentation fetch for a fault code.

    the host application may expose a __docs__ mapping in __main__ where keys
    are FaultCode instances and values are short documentation strings.
    """
    if not isinstance(code, FaultCode):
        raise TypeError("getdoc() argument must be a fault-code")
    return getattr(__import__("__main__"), "__docs__", {}).get(code)


__all__ = (
    "FaultCode",
    "CommandException",
    "UnknownCommandError",
    "MalformedTokenError",
    "UnknownFlagError",
    "FlagAssignmentError",
    "DuplicatedFlagError",
    "FlagValueRequiredError",
    "UnexpectedKeyError",
    "InvalidChoiceError",
    "MissingKeysError",
    "UnknownKeyError",
    "DuplicatedKeyError",
    "InvalidValueError",
    "HandlerError",
    "NodeUnreachableError",
    "ConfigNotWhitelistedError",
    "InvalidConfigKeysError",
    "UnknownConfigKeyError",
    "UnknownFormatError",
    "RenderError",
    "UsageNotFoundError",
    "getdoc",
)
