"""
In-Memory Repository Implementations.

For testing and local development. NOT FOR PRODUCTION.
Data is lost on process restart.
"""

from .collection_store import InMemoryCollectionStore, InMemoryUnitOfWork
from .machine_directory import InMemoryMachineDirectory

__all__ = [
    "InMemoryCollectionStore",
    "InMemoryMachineDirectory",
    "InMemoryUnitOfWork",
]
