"""
Library config module. Values are loaded once at import time from config.yaml
with environment variable overrides and validated before use.
"""

# Local
from . import validation
from .config import library_config


# Delegate attribute access on this module to the library config
def __getattr__(name):
    if name in library_config or hasattr({}, name):
        return getattr(library_config, name)
    raise AttributeError(f"No such config attribute {name}")


# Only expose the library config keys
__all__ = list(library_config.keys())
