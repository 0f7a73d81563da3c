"""In-process stand-in for the memory ingestion endpoint."""

from omi_memory.mock.registry import CREATE_MEMORY, MockApp, MockRegistry, StoredMemory
from omi_memory.mock.server import MockServer, create_mock_app

__all__ = [
    "CREATE_MEMORY",
    "MockApp",
    "MockRegistry",
    "MockServer",
    "StoredMemory",
    "create_mock_app",
]
