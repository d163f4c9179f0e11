"""Sync workflow: orchestration, cleanup and CLI."""
from .cleanup import CleanupPlan, CleanupResult, cleanup_collections, plan_cleanup
from .orchestrator import (
    CollectionKind,
    CollectionResult,
    Stage,
    SyncOptions,
    SyncOrchestrator,
    SyncSummary,
    build_environment,
)

__all__ = [
    "CleanupPlan", "CleanupResult", "cleanup_collections", "plan_cleanup",
    "CollectionKind", "CollectionResult", "Stage", "SyncOptions",
    "SyncOrchestrator", "SyncSummary", "build_environment",
]
