"""
Storage — keyed local persistence for cart and address.

    from storefront import storage as St

    slots = St.FileStorage("~/.storefront")   # or St.MemoryStorage()
    St.dump_json(slots, "storefront:cart", [...])
    St.load_json(slots, "storefront:cart")    # None if missing or corrupt
"""

from storefront.storage._storage import (
    StorageError,
    KeyValueStorage,
    MemoryStorage,
    FileStorage,
    load_json,
    dump_json,
)

__all__ = (
    "StorageError",
    "KeyValueStorage",
    "MemoryStorage",
    "FileStorage",
    "load_json",
    "dump_json",
)
