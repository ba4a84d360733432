"""
Raw Ingestion Module
"""
from .loader import LoadResult, LoadStatus, RawLoader, SOURCE_FILES

__all__ = [
    "LoadResult",
    "LoadStatus",
    "RawLoader",
    "SOURCE_FILES",
]
