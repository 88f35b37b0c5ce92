"""Catalog synchronization: per-tenant refresh runs and their admission queue."""

from quizpoll_pipeline.sync.orchestrator import SyncOrchestrator
from quizpoll_pipeline.sync.queue import SyncQueue

__all__ = ["SyncOrchestrator", "SyncQueue"]
