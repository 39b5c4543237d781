"""
Collection lifecycle use cases.

Commands (create/receive/edit/cancel/bulk/remove) return typed results with a
CollectionError; infrastructure failures propagate as VendCashError.
"""

from .bulk_cancel_collections import BulkCancelCollectionsUseCase
from .bulk_create_collections import BulkCreateCollectionsUseCase, BulkCreateItem
from .cancel_collection import CancelCollectionUseCase
from .collection_filters import CollectionSearchFilters
from .collection_queries import (
    CheckDuplicateUseCase,
    CountMachineCollectionsUseCase,
    GetCollectionHistoryUseCase,
    GetCollectionUseCase,
    ListCollectionsQuery,
    ListCollectionsUseCase,
    ListOperatorCollectionsUseCase,
    ListPendingCollectionsUseCase,
)
from .collection_results import (
    BulkCancelItemError,
    BulkCancelResult,
    BulkCreateItemError,
    BulkCreateResult,
    CollectionError,
    CollectionErrorCode,
    CollectionHistoryResult,
    CollectionListResult,
    CollectionPageResult,
    CollectionResult,
    RemoveCollectionResult,
)
from .create_collection import CreateCollectionInput, CreateCollectionUseCase
from .edit_collection import EditCollectionUseCase
from .receive_collection import ReceiveCollectionUseCase
from .remove_collection import RemoveCollectionUseCase

__all__ = [
    "BulkCancelCollectionsUseCase",
    "BulkCancelItemError",
    "BulkCancelResult",
    "BulkCreateCollectionsUseCase",
    "BulkCreateItem",
    "BulkCreateItemError",
    "BulkCreateResult",
    "CancelCollectionUseCase",
    "CheckDuplicateUseCase",
    "CollectionError",
    "CollectionErrorCode",
    "CollectionHistoryResult",
    "CollectionListResult",
    "CollectionPageResult",
    "CollectionResult",
    "CollectionSearchFilters",
    "CountMachineCollectionsUseCase",
    "CreateCollectionInput",
    "CreateCollectionUseCase",
    "EditCollectionUseCase",
    "GetCollectionHistoryUseCase",
    "GetCollectionUseCase",
    "ListCollectionsQuery",
    "ListCollectionsUseCase",
    "ListOperatorCollectionsUseCase",
    "ListPendingCollectionsUseCase",
    "ReceiveCollectionUseCase",
    "RemoveCollectionResult",
    "RemoveCollectionUseCase",
]
