"""
Tabspine - tables, keys and migrations over a spreadsheet-style store.

- tabspine.core: engine, transports, errors, logging, settings
"""

__version__ = "0.1.0"

# Re-export everything from the actual implementation
from tabspine.core import *  # noqa
from tabspine.core import __all__  # noqa
