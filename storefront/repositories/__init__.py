"""Persistence adapters and the JSON repositories built on them."""
from .storage import KeyValueStore, MemoryStore, JsonFileStore
from .store_repository import StoreRepository
from .order_repository import OrderRepository
from .session_repository import SessionRepository

__all__ = [
    'KeyValueStore',
    'MemoryStore',
    'JsonFileStore',
    'StoreRepository',
    'OrderRepository',
    'SessionRepository',
]
