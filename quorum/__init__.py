__title__ = 'quorum'
__author__ = 'Eiko Reishin (影皇嶺臣)'
__license__ = 'MIT'
# Placeholder, modified by dynamic-versioning.
__version__ = "0.0.0"

import importlib
import logging
import types

from .commands import *
from .config import *
from .faults import *
from .nodes import *
from .pipeline import *
from .rpc import register_transport, unregister_transport, calling_node, invocation
from .registry import registry
from .specs import *
from .status import *
from .usage import *
from .utils import Unset, mglob
from .writers import *

logging.getLogger(__name__).addHandler(logging.NullHandler())

VersionInfo = __import__("collections").namedtuple("VersionInfo", (
    "major",
    "minor",
    "micro",
    "releaselevel",
    "serial",
    "metadata"
))

# Placeholder, modified by dynamic-versioning.
version_info = VersionInfo(0, 0, 0, "final", 0, "")


def register(*sources):
    """
    load plugin modules and call their register_cli() function.

    sources are modules or dotted module names; names may be globs
    ("myapp.cli.*", "myapp.**.admin").
    """
    loaded = []
    for source in sources:
        if isinstance(source, types.ModuleType):
            modules = [source]
        else:
            modules = [importlib.import_module(name) for name in mglob(source)]
        for module in modules:
            hook = getattr(module, "register_cli", None)
            if not callable(hook):
                raise TypeError("module %r has no register_cli() function" % module.__name__)
            hook()
            loaded.append(module.__name__)
    logging.getLogger(__name__).debug("registered cli of %s", ", ".join(loaded) or "nothing")
    return loaded


def reset():
    """
    drop every registration and re-install the built-in writers and config commands.
    """
    registry.clear()
    install_defaults()
    install_commands()


install_defaults()
install_commands()

__all__ = (
    "__title__",
    "__author__",
    "__license__",
    "__version__",
    "version_info",
    "Unset",
    "registry",
    "register",
    "reset",
    "register_transport",
    "unregister_transport",
    "calling_node",
    "invocation",
)

# Load the exposed API of the commands
__all__ += commands.__all__  # type: ignore[attr-defined]
# Load the exposed API of the specs
__all__ += specs.__all__  # type: ignore[attr-defined]
# Load the exposed API of the faults
__all__ += faults.__all__  # type: ignore[attr-defined]
# Load the exposed API of the status model
__all__ += status.__all__  # type: ignore[attr-defined]
# Load the exposed API of the registries
__all__ += usage.__all__ + writers.__all__ + config.__all__  # type: ignore[attr-defined]
# quorum.nodes is shadowed by its nodes() function
__all__ += importlib.import_module(".nodes", __name__).__all__
# Load the exposed API of the pipeline
__all__ += pipeline.__all__  # type: ignore[attr-defined]
