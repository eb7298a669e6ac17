"""Sync engine exports."""

from .executor import PAGE_SIZE, TileSyncExecutor
from .exporter import ExportPipeline, verify_snapshot
from .negotiator import SyncStatusNegotiator
from .orchestrator import CycleState, SyncOrchestrator
from .progress import NullSyncProgress, SyncProgress

__all__ = [
    "PAGE_SIZE",
    "CycleState",
    "ExportPipeline",
    "NullSyncProgress",
    "SyncOrchestrator",
    "SyncProgress",
    "SyncStatusNegotiator",
    "TileSyncExecutor",
    "verify_snapshot",
]
