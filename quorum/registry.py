"""
Process-wide registry service.

Every pluggable piece of the framework lives in one of the tables below. The tables
are plain keyed stores: they enforce key uniqueness (re-registering overrides) and
nothing else. Business rules (pattern validation, whitelist checks, ...) belong to
the modules that own each table.

Tables
- commands:   Pattern -> Entry(pattern, keys, flags, handler)
- usage:      tuple[str, ...] -> str | Callable[[], str]
- writers:    format name -> Callable[[payload], (stdout, stderr)]
- configs:    config key -> Callable[[key, value, flags], object]
- formatters: config key -> Callable[[value], str]
- whitelist:  config key -> frozenset of owning applications

Single slots
- finder:     the active node finder (Callable[[], Iterable[str]]) or Unset
- transport:  the active remote transport or Unset

Concurrency
- each table has its own re-entrant lock; readers copy what they need while holding
  it and release it before calling any handler, writer or transport.
"""
import logging
import threading

from .utils import Unset

logger = logging.getLogger(__name__)


class Table:
    """
    a keyed store guarded by its own lock.
    """

    def __init__(self, name, /):
        self._name = name
        self._entries = {}
        self._lock = threading.RLock()

    @property
    def name(self):
        return self._name

    def insert(self, key, value, /):
        """
        store value under key; return True when a previous entry was replaced.
        """
        with self._lock:
            replaced = key in self._entries
            self._entries[key] = value
        logger.debug("%s: %s %r", self._name, "replaced" if replaced else "registered", key)
        return replaced

    def delete(self, key, /):
        """
        remove key; return False when nothing was registered under it.
        """
        with self._lock:
            found = self._entries.pop(key, Unset) is not Unset
        if found:
            logger.debug("%s: unregistered %r", self._name, key)
        return found

    def lookup(self, key, default=Unset, /):
        with self._lock:
            return self._entries.get(key, default)

    def update(self, key, function, /):
        """
        atomically replace the entry under key with function(current).

        current is Unset when key is absent; returning Unset removes the entry.
        """
        with self._lock:
            value = function(self._entries.get(key, Unset))
            if value is Unset:
                self._entries.pop(key, None)
            else:
                self._entries[key] = value
            return value

    def snapshot(self):
        """
        a point-in-time copy of all entries as a tuple of (key, value) pairs.
        """
        with self._lock:
            return tuple(self._entries.items())

    def clear(self):
        with self._lock:
            self._entries.clear()

    def __contains__(self, key):
        with self._lock:
            return key in self._entries

    def __len__(self):
        with self._lock:
            return len(self._entries)

    def __repr__(self):
        return f"table(name={self._name!r}, size={len(self)})"


class Slot:
    """
    a single-value holder (only one active entry at any time).
    """

    def __init__(self, name, /):
        self._name = name
        self._value = Unset
        self._lock = threading.Lock()

    def set(self, value, /):
        with self._lock:
            self._value = value
        logger.debug("%s: registered %r", self._name, value)

    def unset(self):
        with self._lock:
            found, self._value = self._value is not Unset, Unset
        if found:
            logger.debug("%s: unregistered", self._name)
        return found

    def get(self):
        with self._lock:
            return self._value

    def __repr__(self):
        return f"slot(name={self._name!r}, value={self.get()!r})"


class Registry:
    """
    owner of every table; the only mutation surface is register/unregister on the
    owning modules, which go through the tables below.
    """

    def __init__(self):
        self.commands = Table("commands")
        self.usage = Table("usage")
        self.writers = Table("writers")
        self.configs = Table("configs")
        self.formatters = Table("formatters")
        self.whitelist = Table("whitelist")
        self.finder = Slot("finder")
        self.transport = Slot("transport")

    def clear(self):
        """
        drop every entry from every table and slot (teardown).
        """
        for table in (self.commands, self.usage, self.writers, self.configs, self.formatters, self.whitelist):
            table.clear()
        self.finder.unset()
        self.transport.unset()
        logger.debug("registry cleared")


registry = Registry()


__all__ = (
    "Table",
    "Slot",
    "Registry",
    "registry",
)
