"""Client side of list ordering: API access, local stores and the reorder controller."""

from client.api import OrderingApiClient, PersistenceFailure
from client.controller import ReorderController, ReorderResult, ReorderState
from client.store import ItemStore, NavigationStore

__all__ = [
    "ItemStore",
    "NavigationStore",
    "OrderingApiClient",
    "PersistenceFailure",
    "ReorderController",
    "ReorderResult",
    "ReorderState",
]
