"""
Adapters package
----------------

Abstractions for I/O and run metadata so the pipelines can read and
write either the local filesystem or S3 with the same business logic.
"""

from .storage import (  # noqa: F401
    LocalStorageAdapter,
    S3StorageAdapter,
    StorageAdapter,
)
from .metadata import (  # noqa: F401
    LocalMetadataAdapter,
    MetadataAdapter,
)

__all__ = [
    "StorageAdapter",
    "LocalStorageAdapter",
    "S3StorageAdapter",
    "MetadataAdapter",
    "LocalMetadataAdapter",
]
