"""
Built-in writers.

- human: rich-rendered plain text. Alerts go to stderr, everything else to stdout.
  Tables become rounded rich tables, lists a title plus indented items, faults
  render through their own rich protocol.
- json: stdout is a JSON array of element objects, alerts a JSON array on stderr.
- csv: tables only, one CSV block per table; anything else is reported on stderr.

The rendering width comes from $QUORUM_WIDTH (default 100) so output does not
depend on the terminal the command happens to run on.
"""
import csv as _csv
import io
import json as _json
import os

from rich.box import ROUNDED
from rich.console import Console
from rich.table import Table as RichTable
from rich.text import Text as RichText

from .faults import CommandException
from .status import Text, List, Table, Alert, Column, flatten


def _width():
    try:
        return max(int(os.environ.get("QUORUM_WIDTH", "100")), 20)
    except ValueError:
        return 100


def _split(payload):
    """
    partition a payload into (regular elements, alert contents).
    """
    regular = []
    alerts = []
    for element in flatten(payload):
        if isinstance(element, Alert):
            alerts.extend(element.elements)
        else:
            regular.append(element)
    return regular, alerts


def _renderable(element):
    match element:
        case Text(text=text):
            return RichText(text)
        case List(title=title, items=items):
            lines = ([RichText(title)] if title else []) + [RichText("  " + str(item)) for item in items]
            return RichText("\n").join(lines)
        case Column(items=items):
            return RichText("\n").join(RichText(str(item)) for item in items)
        case Table(header=header, rows=rows):
            table = RichTable(box=ROUNDED, show_edge=True, highlight=False)
            for name in header:
                table.add_column(name, overflow="fold")
            for row in rows:
                table.add_row(*("" if cell is None else str(cell) for cell in row))
            return table
        case CommandException():
            return element
    raise TypeError("unsupported status element %r" % (element,))


def _print(elements):
    buffer = io.StringIO()
    console = Console(
        file=buffer,
        width=_width(),
        color_system=None,
        force_terminal=False,
        highlight=False,
        markup=False,
        emoji=False,
    )
    for element in elements:
        if isinstance(element, Table) and not element.header:
            continue
        console.print(_renderable(element))
    return buffer.getvalue()


def human(payload, /):
    regular, alerts = _split(payload)
    return _print(regular), _print(alerts)


def _encode(element):
    match element:
        case Text(text=text):
            return {"type": "text", "text": text}
        case List(title=title, items=items):
            return {"type": "list", "title": title, "items": list(items)}
        case Column(items=items):
            return {"type": "column", "items": list(items)}
        case Table(header=header, rows=rows):
            return {"type": "table", "table": [dict(zip(header, row)) for row in rows]}
        case CommandException():
            return {
                "type": "error",
                "code": element.options["code"].normalize(),
                "title": element.options["title"],
                "message": element.message,
                "hint": element.options.get("hint"),
            }
    raise TypeError("unsupported status element %r" % (element,))


def json(payload, /):
    regular, alerts = _split(payload)
    stdout = _json.dumps([_encode(element) for element in regular], default=str) + "\n"
    stderr = _json.dumps([_encode(element) for element in alerts], default=str) + "\n" if alerts else ""
    return stdout, stderr


def csv(payload, /):
    regular, alerts = _split(payload)
    blocks = []
    notices = []
    for element in regular:
        if not isinstance(element, Table):
            notices.append("csv output only supports tables, skipped a %s element\n" % type(element).__name__.lower())
            continue
        buffer = io.StringIO()
        writer = _csv.writer(buffer, lineterminator="\n")
        writer.writerow(element.header)
        writer.writerows(("" if cell is None else cell for cell in row) for row in element.rows)
        blocks.append(buffer.getvalue())
    stderr = "".join(notices) + (_print(alerts) if alerts else "")
    return "\n".join(blocks), stderr


__all__ = (
    "human",
    "json",
    "csv",
)
