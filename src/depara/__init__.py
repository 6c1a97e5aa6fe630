"""DePara: scheduled move, copy, and delete of files with backups and progress."""

from importlib import import_module
from importlib import metadata as _metadata

__all__ = ["__version__", "DeParaConfig", "DeParaError", "FileOperationsManager"]

_LAZY_EXPORTS = {
    "DeParaConfig": "depara.config",
    "DeParaError": "depara.errors",
    "FileOperationsManager": "depara.manager",
}


def __getattr__(name: str):
    if name == "__version__":
        return _metadata.version("depara")
    if name in _LAZY_EXPORTS:
        return getattr(import_module(_LAZY_EXPORTS[name]), name)
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")


def __dir__():
    return sorted(list(globals().keys()) + __all__)
