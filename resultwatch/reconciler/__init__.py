"""Portal notification reconciliation."""

from .delta import PREFIX_MATCH_LENGTH, diff, is_same_item
from .extractor import RESULT_READY_PHRASES, extract, latest_detail_link, parse_visit_id
from .reconciler import IReconciler, Reconciler
from .snapshots import InMemorySnapshotStore, ISnapshotStore

__all__ = [
    "PREFIX_MATCH_LENGTH",
    "diff",
    "is_same_item",
    "RESULT_READY_PHRASES",
    "extract",
    "latest_detail_link",
    "parse_visit_id",
    "IReconciler",
    "Reconciler",
    "InMemorySnapshotStore",
    "ISnapshotStore",
]
