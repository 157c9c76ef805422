"""
Runtime configuration commands.

Applications expose settings by registering, per config key (a dotted name such as
"search.buffer_size", or the list of its segments):

- a config callback   callback(key, value, flags) -> object
                      value is Unset for a read; for a write it is the raw string
                      and the return value is a message shown to the operator.
- a formatter         formatter(value) -> str, used by 'show' (optional).
- a whitelist entry   register_config_whitelist(keys, app): only whitelisted keys
                      may be changed with 'set'. Nothing is writable by default.

Built-in commands (registered for any script name, so an application's own
literal commands always win)
- <script> show <key>... [--all]        table of the current values per node.
- <script> set <key>=<value>... [--all] change values, all keys or none.
- <script> describe <key>...            formatter and whitelist owners per key.
"""
import logging
import re

from .commands import register_command
from .faults import *
from .nodes import multicall, targets
from .registry import registry
from .status import text, listing, table, alert
from .utils import Unset

logger = logging.getLogger(__name__)


def _key(key):
    """
    normalize a config key to its dotted form.
    """
    if not isinstance(key, str):
        if not all(isinstance(segment, str) for segment in key):
            raise TypeError("config key must be a dotted string or a sequence of strings")
        key = ".".join(key)
    if not re.fullmatch(r"[\w\-]+(\.[\w\-]+)*", key):
        raise ValueError(f"config key {key!r} is malformed")
    return key


def register_config(key, callback, /):
    """
    Register the callback reading and writing a config key (replaces any previous one).
    """
    if not callable(callback):
        raise TypeError("register_config() callback must be callable")
    registry.configs.insert(_key(key), callback)


def unregister_config(key, /):
    return registry.configs.delete(_key(key))


def register_formatter(key, formatter, /):
    if not callable(formatter):
        raise TypeError("register_formatter() formatter must be callable")
    registry.formatters.insert(_key(key), formatter)


def unregister_formatter(key, /):
    return registry.formatters.delete(_key(key))


def _checked(keys, app):
    if not isinstance(app, str) or not app:
        raise TypeError("config whitelist application must be a non-empty string")
    if isinstance(keys, str):
        keys = [keys]
    keys = list(dict.fromkeys(map(_key, keys)))
    if invalid := [key for key in keys if key not in registry.configs]:
        raise InvalidConfigKeysError(
            "invalid config keys: %s" % ", ".join(invalid),
            input=tuple(invalid),
            hint="register a config callback for every key before whitelisting it",
            docs=getdoc(FaultCode.INVALID_CONFIG_KEYS),
        )
    return keys


def register_config_whitelist(keys, app, /):
    """
    Allow app's keys to be changed with 'set'.

    Raises
    - InvalidConfigKeysError listing every key without a config callback (nothing
      is whitelisted in that case).
    """
    for key in _checked(keys, app):
        registry.whitelist.update(key, lambda owners: frozenset(owners or ()) | {app})


def unregister_config_whitelist(keys, app, /):
    """
    Withdraw app's whitelisting; a key stays writable while another app lists it.
    """
    for key in _checked(keys, app):
        registry.whitelist.update(key, lambda owners: (frozenset(owners or ()) - {app}) or Unset)


def whitelisted(key, /):
    return bool(registry.whitelist.lookup(_key(key), frozenset()))


def _unknown(key):
    known = sorted(name for name, _ in registry.configs.snapshot())
    return UnknownConfigKeyError(
        "unknown config key %r" % key,
        input=key,
        hint="known keys: %s" % (", ".join(known) or "none"),
        docs=getdoc(FaultCode.UNKNOWN_CONFIG_KEY),
    )


def _names(keys, route):
    """
    the config keys named on a 'show'/'describe' command line.
    """
    if keys:
        name = next(iter(keys))
        raise UnexpectedKeyError(
            "unexpected assignment %r" % ("%s=%s" % (name, keys[name])),
            input=name,
            hint="'%s' takes key names only" % route,
            docs=getdoc(FaultCode.UNEXPECTED_KEY),
        )
    if not keys.overflow:
        raise MissingKeysError(
            "missing config keys",
            input=(),
            hint="name at least one key, for example: %s <key>" % route,
            docs=getdoc(FaultCode.MISSING_KEYS),
        )
    names = list(dict.fromkeys(map(_key, keys.overflow)))
    for name in names:
        if name not in registry.configs:
            raise _unknown(name)
    return names


def _read(names, flags):
    values = {}
    for name in names:
        callback = registry.configs.lookup(name, None)
        if callback is None:
            raise _unknown(name)
        value = callback(name, Unset, flags)
        formatter = registry.formatters.lookup(name, str)
        values[name] = formatter(value)
    return values


def _write(assignments, flags):
    messages = []
    for name, value in assignments.items():
        callback = registry.configs.lookup(name, None)
        if callback is None:
            raise _unknown(name)
        if (message := callback(name, value, flags)) is not None:
            messages.append(str(message))
    return messages


def _down(down):
    if not down:
        return []
    return [alert([text("failed to reach: %s" % ", ".join(map(str, down)))])]


def show_config(path, keys, flags, /):
    names = _names(keys, " ".join(path))
    results, down = multicall(_read, names, dict(flags))
    rows = [{"node": node} | values for node, values in results.items()]
    return [table(rows)] + _down(down)


def set_config(path, keys, flags, /):
    route = " ".join(path)
    if keys.overflow:
        raise UnexpectedKeyError(
            "unexpected argument %r" % keys.overflow[0],
            input=keys.overflow[0],
            hint="'%s' takes key=value assignments only" % route,
            docs=getdoc(FaultCode.UNEXPECTED_KEY),
        )
    if not keys:
        raise MissingKeysError(
            "missing config assignments",
            input=(),
            hint="for example: %s <key>=<value>" % route,
            docs=getdoc(FaultCode.MISSING_KEYS),
        )

    assignments = {_key(name): value for name, value in keys.items()}
    for name in assignments:
        if name not in registry.configs:
            raise _unknown(name)
    if forbidden := [name for name in assignments if not whitelisted(name)]:
        raise ConfigNotWhitelistedError(
            "setting %s is not allowed" % ", ".join(map(repr, forbidden)),
            input=tuple(forbidden),
            hint="only whitelisted keys can be changed at runtime",
            docs=getdoc(FaultCode.CONFIG_NOT_WHITELISTED),
        )

    nodes = targets()
    results, down = multicall(_write, assignments, dict(flags), among=nodes)
    logger.info("config %s set on %d node(s)", ", ".join(assignments), len(results))
    if len(nodes) == 1:
        payload = [text(message) for messages in results.values() for message in messages]
    else:
        payload = [listing(messages, title=str(node)) for node, messages in results.items()]
    return payload + _down(down)


def describe_config(path, keys, flags, /):
    rows = []
    for name in _names(keys, " ".join(path)):
        owners = registry.whitelist.lookup(name, frozenset())
        rows.append({
            "key": name,
            "formatter": "yes" if name in registry.formatters else "no",
            "whitelisted by": ", ".join(sorted(owners)) or "-",
        })
    return [table(rows)]


def install_commands():
    """
    (re)register the built-in config commands.
    """
    register_command(["*", "show"], "_", "_", show_config)
    register_command(["*", "set"], "_", "_", set_config)
    register_command(["*", "describe"], "_", (), describe_config)


__all__ = (
    "register_config",
    "unregister_config",
    "register_formatter",
    "unregister_formatter",
    "register_config_whitelist",
    "unregister_config_whitelist",
    "whitelisted",
    "install_commands",
)
