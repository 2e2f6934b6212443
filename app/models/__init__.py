from .property import Property, Memory
from .address_cache import AddressCacheEntry

__all__ = [
    "Property",
    "Memory",
    "AddressCacheEntry",
]
