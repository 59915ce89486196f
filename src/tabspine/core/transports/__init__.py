"""Transport implementations.

- ``HttpTransport``: Sheets v4 REST over httpx
- ``InMemoryTransport``: dict-backed store for tests and local runs
"""

from tabspine.core.transports.http import HttpTransport, create_store, extract_store_id
from tabspine.core.transports.memory import InMemoryTransport, TransportCall

__all__ = [
    "HttpTransport",
    "InMemoryTransport",
    "TransportCall",
    "create_store",
    "extract_store_id",
]
