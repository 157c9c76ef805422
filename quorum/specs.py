r"""
Quorum argument specifications.

Overview
- Key: positional, value-bearing argument of a command (`cluster join NODE`).
  A key can also be addressed by name with a `name=value` token.
- Flag: named argument (`--name value`, `--name=value`, `-n value`), either
  value-bearing or presence-only (datatype "flag").
- WILDCARD ("_"): in place of a whole key or flag list, accept anything and let
  the handler validate.

Datatypes
- "string"  → str (no conversion)
- "integer" → int, base 10, sign allowed
- "float"   → float
- "boolean" → true/false, on/off, yes/no, 1/0 (case-insensitive)
- "flag"    → presence only (flags only); value is True when given

A custom `typecast` callable replaces the datatype conversion; `choices` restricts
the converted value. Bad input is reported by Spec.convert, which the parser turns
into a position-aware fault.

Introspection & representation
- SpecType metaclass provides stable __repr__/__rich_repr__ and exposes selected
  fields via read-only properties declared in __introspectable__.

Quick example:
    >>> from quorum.specs import Key, Flag
    >>> register_command(["admin", "join", "*"], [Key("node")], [Flag("force", "f")], join)
"""
import functools
import operator
import re
from collections.abc import Iterable, Set

from .utils import *

WILDCARD = "_"

_BOOLEANS = {
    "true": True, "on": True, "yes": True, "1": True,
    "false": False, "off": False, "no": False, "0": False,
}


def _boolean(token):
    try:
        return _BOOLEANS[token.strip().lower()]
    except KeyError:
        raise ValueError("expected one of %s" % "/".join(_BOOLEANS)) from None


DATATYPES = {
    "string": str,
    "integer": functools.partial(int, base=10),
    "float": float,
    "boolean": _boolean,
}


class SpecType(type):
    """
    Metaclass that turns specs into introspectable, read-only descriptors.

    Responsibilities
    - Expose every name listed in __introspectable__ as a read-only property
      mirroring the private "_{name}" backing field.
    - Provide stable __repr__/__rich_repr__ for diagnostics.
    - Derive __typename__ from the class name for messages.
    """
    __introspectable__ = ()

    def __new__(cls, name, bases, namespace, **options):
        self = super().__new__(
            cls,
            name,
            bases,
            namespace | {
                "__typename__": re.sub(r"(?<!^)(?=[A-Z])", r"-", name).lower(),
            } | {
                name: mirror(name) for name in namespace.get("__introspectable__", ())
            },
        )

        @rename("__repr__")
        def __repr__(self):
            return "%s(%s)" % (
                type(self).__typename__,
                ", ".join(map(functools.partial(operator.mod, "%s=%r"), self.__rich_repr__())),
            )
        self.__repr__ = __repr__

        @rename("__rich_repr__")
        def __rich_repr__(self):
            for name in type(self).__introspectable__:
                yield name, getattr(self, name)
        self.__rich_repr__ = __rich_repr__

        return self


class _Spec(metaclass=SpecType):
    """
    shared sanitizing and conversion for keys and flags.
    """

    def _sanitize(self, name, datatype, required, default, typecast, choices, descr):
        cls = type(self)
        if not isinstance(name, str):
            raise TypeError(f"{cls.__typename__} 'name' must be a string")
        if not re.fullmatch(r"(?!\d)\w+(-\w+)*", name):
            raise ValueError(f"{cls.__typename__} 'name' must be an identifier, got {name!r}")
        if datatype not in DATATYPES and datatype != "flag":
            raise ValueError(f"{cls.__typename__} 'datatype' must be one of {sorted([*DATATYPES, 'flag'])}")
        if not isinstance(required, bool):
            raise TypeError(f"{cls.__typename__} 'required' must be a bool")
        if typecast is not Unset and not callable(typecast):
            raise TypeError(f"{cls.__typename__} 'typecast' must be callable")
        if descr is not Unset and not isinstance(descr, str):
            raise TypeError(f"{cls.__typename__} 'descr' must be a string")

        if choices is not Unset:
            if not isinstance(choices, Iterable) or isinstance(choices, str):
                raise TypeError(f"{cls.__typename__} 'choices' must be a non-string iterable")
            if not isinstance(choices, Set) and len(set(choices := tuple(choices))) != len(choices):
                raise ValueError(f"{cls.__typename__} 'choices' cannot contain duplicates")
            if not choices:
                raise ValueError(f"{cls.__typename__} 'choices' must not be empty")

        self._name = name
        self._datatype = datatype
        self._required = required
        self._default = coalesce(default)
        self._typecast = coalesce(typecast)
        self._choices = coalesce(choices)
        self._descr = coalesce(descr)

    def convert(self, token, /):
        """
        convert a raw token into this spec's value.

        Raises
        - ValueError when the token cannot be converted.
        - LookupError (carrying the converted value) when it is not an allowed choice.
        """
        try:
            value = (self._typecast or DATATYPES[self._datatype])(token)
        except (TypeError, ValueError, LookupError) as error:
            raise ValueError(str(error) or "cannot convert %r" % token) from None
        if self._choices is not None and value not in self._choices:
            raise LookupError(value)
        return value


class Key(_Spec):
    """
    positional key of a command.

    Parameters
    - name: identifier used as the ParsedArgs key and for `name=value` tokens.
    - datatype: one of "string", "integer", "float", "boolean".
    - required: when False the key may be omitted and `default` is used.
    - default: value for an omitted optional key (None when unset).
    - typecast: custom converter replacing the datatype conversion.
    - choices: allowed converted values.
    - descr: short help.
    """
    __introspectable__ = (
        "name",
        "datatype",
        "required",
        "default",
        "choices",
        "descr",
    )

    def __init__(self, name, /, datatype="string", *, required=True, default=Unset, typecast=Unset, choices=Unset, descr=Unset):
        if datatype == "flag":
            raise ValueError("key 'datatype' cannot be 'flag'; presence-only values are flags")
        if default is not Unset and required:
            required = False
        self._sanitize(name, datatype, required, default, typecast, choices, descr)

    def __eq__(self, other):
        if not isinstance(other, Key):
            return NotImplemented
        return tuple(self.__rich_repr__()) == tuple(other.__rich_repr__())

    def __hash__(self):
        return hash((Key, self._name, self._datatype))


class Flag(_Spec):
    """
    named flag of a command.

    Parameters
    - name: identifier used as the ParsedArgs flag key.
    - shortname: single character for the `-x` form (optional).
    - longname: long form without dashes (defaults to name with '_' → '-').
    - datatype: "flag" (presence-only, the default) or a value datatype.
    - required: when True the flag must be given.
    - default: value for an omitted value-bearing flag (omitted flags are absent
      from ParsedArgs unless a default is declared).
    - typecast / choices / descr: as for Key.
    """
    __introspectable__ = (
        "name",
        "shortname",
        "longname",
        "datatype",
        "required",
        "default",
        "choices",
        "descr",
    )

    def __init__(self, name, /, shortname=Unset, longname=Unset, datatype="flag", *, required=False, default=Unset, typecast=Unset, choices=Unset, descr=Unset):
        self._sanitize(name, datatype, required, default, typecast, choices, descr)
        if datatype == "flag" and (typecast is not Unset or choices is not Unset or default is not Unset):
            raise TypeError("flag of datatype 'flag' cannot declare typecast, choices or default")
        if shortname is not Unset and not (isinstance(shortname, str) and re.fullmatch(r"[^\W\d_]", shortname)):
            raise ValueError(f"flag 'shortname' must be a single letter, got {shortname!r}")
        longname = coalesce(longname, name.replace("_", "-"))
        if not isinstance(longname, str) or not re.fullmatch(r"[^\W\d_](-?[^\W_]+)*", longname):
            raise ValueError(f"flag 'longname' must be a dash-separated word, got {longname!r}")
        self._shortname = coalesce(shortname)
        self._longname = longname

    @property
    def presence(self):
        """
        True when the flag carries no value.
        """
        return self._datatype == "flag"

    @property
    def names(self):
        """
        the spellings accepted on the command line ('--long' and, if any, '-s').
        """
        return ("--" + self._longname,) + (("-" + self._shortname,) if self._shortname else ())

    def __eq__(self, other):
        if not isinstance(other, Flag):
            return NotImplemented
        return tuple(self.__rich_repr__()) == tuple(other.__rich_repr__())

    def __hash__(self):
        return hash((Flag, self._name, self.names, self._datatype))


GLOBAL_FLAGS = (
    Flag("all", descr="run the command on every node of the cluster"),
    Flag("format", datatype="string", descr="output format (human, json, csv, ...)"),
    Flag("help", "h", descr="print usage instead of running the command"),
)


def _normalize(spec, kind, /):
    """
    turn a user-supplied spec list into WILDCARD or a tuple of kind instances.
    """
    if spec == WILDCARD:
        return WILDCARD
    if isinstance(spec, str) or not isinstance(spec, Iterable):
        raise TypeError(f"{kind.__typename__} spec must be {WILDCARD!r} or an iterable of {kind.__typename__}s")

    entries = []
    seen = set()
    reserved = {name for flag in GLOBAL_FLAGS for name in flag.names} if kind is Flag else set()
    for entry in spec:
        if isinstance(entry, str):
            entry = kind(entry)
        if not isinstance(entry, kind):
            raise TypeError(f"{kind.__typename__} spec entries must be {kind.__typename__}s or names, got {entry!r}")
        spellings = getattr(entry, "names", ()) + (entry.name,)
        if clash := reserved.intersection(spellings[:-1]):
            raise ValueError(f"flag spec name {sorted(clash)[0]!r} is reserved for a global flag")
        if clash := seen.intersection(spellings):
            raise ValueError(f"{kind.__typename__} spec name {sorted(clash)[0]!r} is already in use")
        seen.update(spellings)
        entries.append(entry)
    return tuple(entries)


def keyspec(spec, /):
    """
    normalize a key spec: WILDCARD or an iterable of Key / key names.
    """
    return _normalize(spec, Key)


def flagspec(spec, /):
    """
    normalize a flag spec: WILDCARD or an iterable of Flag / flag names.

    Spellings of the global flags (--all, --format, --help, -h) are rejected.
    """
    return _normalize(spec, Flag)


__all__ = (
    "WILDCARD",
    "DATATYPES",
    "Key",
    "Flag",
    "keyspec",
    "flagspec",
)

del SpecType
