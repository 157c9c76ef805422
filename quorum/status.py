"""
Status model: what handlers return and writers render.

Elements (the payload of a status is a sequence of these)
- Text(text)                  plain paragraph
- List(title, items)          optional title plus one line per item
- Table(header, rows)         rows aligned to a header
- Alert(elements)             elements meant for the error stream
- Column(items)               items stacked without a title
- CommandException            a fault, rendered through its rich protocol

Result shapes
- a bare payload              rendered with "human" (or --format) and exit code 0
- ExitStatus(payload, code, format)
                              explicit exit code; format Unset means "as requested"
- ErrorStatus(fault)          always rendered by "human" with exit code 1
- USAGE                       print the usage text for the invoked path

The framework treats payload contents as opaque; only writers look inside. Use the
lowercase constructors below, they validate their input.
"""
from collections.abc import Iterable, Mapping
from typing import NamedTuple

from .faults import CommandException
from .utils import Unset


class Text(NamedTuple):
    text: str


class List(NamedTuple):
    title: str | None
    items: tuple


class Table(NamedTuple):
    header: tuple
    rows: tuple


class Alert(NamedTuple):
    elements: tuple


class Column(NamedTuple):
    items: tuple


ELEMENTS = (Text, List, Table, Alert, Column, CommandException)


class ExitStatus(NamedTuple):
    payload: object
    code: int
    format: object = Unset


class ErrorStatus(NamedTuple):
    fault: CommandException


USAGE = type("usage-type", (), {
    "__slots__": (),
    "__repr__": lambda self: "usage",
    "__reduce__": lambda self: "USAGE",
    "__doc__": "marker returned by a handler to request the usage text of its path",
})()


def text(text, /):
    if not isinstance(text, str):
        raise TypeError("text() argument must be a string")
    return Text(text)


def listing(items, /, title=None):
    if title is not None and not isinstance(title, str):
        raise TypeError("listing() 'title' must be a string")
    if isinstance(items, str) or not isinstance(items, Iterable):
        raise TypeError("listing() argument must be a non-string iterable")
    return List(title, tuple(items))


def column(items, /):
    if isinstance(items, str) or not isinstance(items, Iterable):
        raise TypeError("column() argument must be a non-string iterable")
    return Column(tuple(items))


def alert(elements, /):
    elements = tuple(flatten(elements))
    if any(isinstance(element, Alert) for element in elements):
        raise TypeError("alert() elements cannot contain alerts")
    return Alert(elements)


def table(rows, /):
    """
    build a table from mappings or sequences of (column, value) pairs.

    The header follows the column order of the first row; every following row must
    have exactly the same columns (in any order).
    """
    if isinstance(rows, str) or not isinstance(rows, Iterable):
        raise TypeError("table() argument must be an iterable of rows")

    header = None
    cells = []
    for index, row in enumerate(rows, 1):
        if not isinstance(row, Mapping):
            try:
                row = dict(row)
            except (TypeError, ValueError):
                raise TypeError("table() row %d must be a mapping or a sequence of pairs" % index) from None
        if header is None:
            header = tuple(map(str, row))
        elif set(map(str, row)) != set(header):
            raise ValueError("table() row %d columns differ from the header %r" % (index, header))
        named = {str(name): value for name, value in row.items()}
        cells.append(tuple(named[name] for name in header))
    return Table(header or (), tuple(cells))


def flatten(payload, /):
    """
    yield the elements of a payload; plain strings become Text elements.

    Raises
    - TypeError on anything that is not a status element.
    """
    if isinstance(payload, ELEMENTS) or isinstance(payload, str):
        payload = (payload,)
    elif not isinstance(payload, Iterable):
        raise TypeError("status payload must be an element or an iterable of elements")
    for element in payload:
        if isinstance(element, str):
            yield Text(element)
        elif isinstance(element, ELEMENTS):
            yield element
        else:
            raise TypeError("unsupported status element %r" % (element,))


__all__ = (
    "Text",
    "List",
    "Table",
    "Alert",
    "Column",
    "ExitStatus",
    "ErrorStatus",
    "USAGE",
    "text",
    "listing",
    "column",
    "alert",
    "table",
    "flatten",
)
