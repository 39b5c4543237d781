"""Application layer: lifecycle engine, duplicate detector, cache invalidation."""

from .collection_engine import CollectionLifecycleEngine
from .duplicate_detector import DuplicateDetector
from .report_cache import REPORT_CACHE_KEYS, ReportCacheInvalidator

__all__ = [
    "CollectionLifecycleEngine",
    "DuplicateDetector",
    "REPORT_CACHE_KEYS",
    "ReportCacheInvalidator",
]
