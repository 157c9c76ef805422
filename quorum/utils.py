"""
Quorum utilities (internal helpers, carefully exposed)

Scope
- Small building blocks shared by the registry, parser and pipeline layers.
- Public-but-internal leaning: stable enough for plugin authors, designed primarily
  to support the higher-level modules of the package.

Overview
- UnsetType / Unset
  • Singleton sentinel to represent “value not provided” without conflating with None.
  • Config callbacks receive Unset as the value when they are asked for a read.

- coalesce(value, default=None)
  • Replace Unset with a concrete default, preserving legitimate falsey values.

- rename(callable, name) / @rename("name")
  • Assign stable __name__/__qualname__ to generated callables.

- mirror("attr")
  • Read-only property exposing a private backing field (self._attr) as a copy.

- ordinal(number)
  • Human-friendly ordinal label used by position-first fault messages.

- mglob(pattern)
  • Expands "pkg.**.cli" style module globs into importable module names
    (used by quorum.register to load plugin modules).
"""
import builtins
import functools
import importlib
import pkgutil
import re
from collections.abc import Sequence, Mapping, Set
from typing import final


@final
class UnsetType:
    """
    Internal sentinel type representing a value that was not provided.

    Characteristics
    - Boolean-false: bool(Unset) is False, but it is distinct from None and 0.
    - Printable: repr(Unset) -> "Unset".
    - Non-subclassable and a singleton per process.
    """

    @functools.cache
    def __new__(cls):
        return super().__new__(cls)

    def __bool__(self):
        return False

    def __repr__(self):
        return "Unset"

    def __reduce__(self):
        return "Unset"

    def __init_subclass__(cls, **options):
        raise TypeError("type 'UnsetType' is not an acceptable base type")


Unset = UnsetType()


def coalesce(object, default=None, /):
    """
    Resolve the Unset sentinel to a concrete default.

    Falsey values like None, 0, "" or [] are preserved as-is; only Unset is replaced.

    Examples
    - coalesce("human", "json") -> "human"
    - coalesce(Unset, "json")   -> "json"
    - coalesce(None, "json")    -> None
    """
    return object if object is not Unset else default


def rename(*parameters):
    """
    Set a stable __name__/__qualname__ on a callable, or return a decorator
    that will do so later.

    Forms
    - rename(callable, name) -> callable (renamed in place)
    - rename(name)           -> decorator
    """
    match len(parameters):
        case 2:
            callable, name = parameters
            if not builtins.callable(callable):
                raise TypeError("rename() first argument must be callable")
            if not isinstance(name, str):
                raise TypeError("rename() second argument must be a string")
            try:
                callable.__qualname__ = name
                callable.__name__ = name
            except (AttributeError, TypeError):
                raise TypeError("rename() first argument must be a updatable callable") from None
            return callable
        case 1:
            name, = parameters
            if not isinstance(name, str):
                raise TypeError("@rename() argument must be a string")

            def wrapper(callable):
                if not builtins.callable(callable):
                    raise TypeError("@rename() must be applied to a callable")
                return rename(callable, name)

            return rename(wrapper, "rename")
        case _:
            raise TypeError("rename takes 1 to 2 arguments but %d were given" % len(parameters))


def _immortalize(object):
    """
    Recursively copy container values so callers cannot mutate backing state.

    Strings are left alone; sequences become tuples, mappings dicts, sets frozensets.
    """
    if isinstance(object, Sequence) and not isinstance(object, str):
        return tuple(map(_immortalize, object))
    elif isinstance(object, Mapping):
        return dict(zip(object.keys(), map(_immortalize, object.values())))
    elif isinstance(object, Set):
        return frozenset(map(_immortalize, object))
    return object


def mirror(name, /):
    """
    Define a read-only property that mirrors the backing attribute "_{name}".
    """
    if not isinstance(name, str):
        raise TypeError("mirror() argument must be a string")

    @rename(name)
    def getter(self):
        return _immortalize(getattr(self, "_" + name))

    return property(getter)


@functools.cache
def ordinal(number, /):
    """
    Return a human-friendly ordinal label for a 1-based position.

    - 1..10 are rendered as words ("first"…"tenth").
    - Other numbers use numeric ordinals with English suffixes (11th, 21st, 112th).
    """
    words = ("first", "second", "third", "fourth", "fifth", "sixth", "seventh", "eighth", "ninth", "tenth")
    if 1 <= number <= len(words):
        return words[number - 1]
    if 10 < number % 100 < 20:
        return f"{number}th"
    return f"{number}%s" % {1: "st", 2: "nd", 3: "rd"}.get(number % 10, "th")


@functools.cache
def _translate_segment(segment):
    """
    translate one glob segment into a regex snippet (dots are never matched).

      *      → zero or more non-dot chars
      ?      → exactly one non-dot char
      [...]  → character class, [!...] negated
      \\x     → x taken literally
    """
    parts = []
    index = 0
    while index < len(segment):
        char = segment[index]
        if char == "\\" and index + 1 < len(segment):
            parts.append(re.escape(segment[index + 1]))
            index += 2
            continue
        if char == "*":
            parts.append(r"[^.]*")
        elif char == "?":
            parts.append(r"[^.]")
        elif char == "[" and (close := segment.find("]", index + 1)) != -1:
            body = segment[index + 1:close]
            if body[:1] in ("!", "^"):
                body = "^" + body[1:]
            parts.append(f"[{body}]")
            index = close
        else:
            parts.append(re.escape(char))
        index += 1
    return "".join(parts)


@functools.cache
def _compile_glob(pattern):
    """
    compile a dotted module glob; a whole '**' segment spans zero or more segments.
    """
    body = ""
    for position, segment in enumerate(pattern.split(".")):
        if segment == "**":
            body += r"(?:\.[A-Za-z_]\w*)*"
        else:
            body += (r"\." if position else "") + _translate_segment(segment)
    return re.compile(body)


def mglob(source, /):
    """
    expand a dot-separated module glob into fully-qualified module names.

    rules
    - the pattern must start with at least one concrete package segment.
    - a pattern without wildcards is returned as-is (import errors surface later).
    - matches are case-sensitive and returned sorted.

    examples
    - "myapp.cli.*"      → direct children of myapp.cli
    - "myapp.**.admin"   → any admin module below myapp
    """
    if not isinstance(source, str):
        raise TypeError("mglob() argument must be a string")
    elif not (source := source.strip()):
        raise ValueError("mglob() argument must be a non-empty string")

    if re.fullmatch(r"(?!\d)\w+(\.(?!\d)\w+)*", source):
        return [source]

    prefixes = []
    for segment in source.split("."):
        if not re.fullmatch(r"(?!\d)\w+", segment):
            break
        prefixes.append(segment)

    if not prefixes:
        raise ValueError("mglob() pattern must start with a concrete package segment")

    try:
        package = importlib.import_module(prefix := ".".join(prefixes))
    except ImportError:
        return []

    pattern = _compile_glob(source)
    matches = {prefix} if pattern.fullmatch(prefix) else set()

    for metadata in pkgutil.walk_packages(getattr(package, "__path__", ()), prefix + "."):
        if pattern.fullmatch(metadata.name):
            matches.add(metadata.name)

    return sorted(matches)


__all__ = (
    "UnsetType",
    "Unset",
    "coalesce",
    "rename",
    "mirror",
    "ordinal",
    "mglob",
)
