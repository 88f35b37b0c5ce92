"""Bounded admission queue for sync runs, keyed per tenant."""

import asyncio
from typing import Awaitable, Callable

from rich.console import Console

from quizpoll_pipeline.models import SyncStats

console = Console()

SyncRun = Callable[[str, str], Awaitable[SyncStats]]

DEFAULT_MAX_CONCURRENCY = 5


class SyncQueue:
    """Run syncs with a global concurrency bound and one run per tenant.

    - At most ``max_concurrency`` runs are in flight; the rest wait FIFO.
    - A request matching a queued or running (tenant, source URL) pair joins
      that run and receives its result.
    - A request for the same tenant with another URL waits behind the
      tenant's current run.
    - A run continues when its callers stop waiting. Its failure reaches
      every caller of that run and nobody else.
    """

    def __init__(self, run: SyncRun, max_concurrency: int = DEFAULT_MAX_CONCURRENCY):
        if max_concurrency < 1:
            raise ValueError("max_concurrency must be at least 1")
        self._run = run
        self.max_concurrency = max_concurrency
        self._slots = asyncio.Semaphore(max_concurrency)
        self._tenant_locks: dict[str, asyncio.Lock] = {}
        self._tenant_users: dict[str, int] = {}
        self._runs: dict[tuple[str, str], asyncio.Task] = {}
        self._running = 0
        self._queued = 0

    async def enqueue(self, tenant_id: str, source_url: str) -> SyncStats:
        key = (tenant_id, source_url)
        task = self._runs.get(key)
        if task is None:
            task = asyncio.create_task(self._execute(tenant_id, source_url))
            self._runs[key] = task
            task.add_done_callback(lambda t, key=key: self._forget(key, t))
        else:
            console.print(f"[dim][SyncQueue] Joining pending sync for {tenant_id}[/dim]")
        return await asyncio.shield(task)

    def _forget(self, key: tuple[str, str], task: asyncio.Task) -> None:
        if self._runs.get(key) is task:
            del self._runs[key]
        # Mark the outcome retrieved even when every caller stopped waiting
        if not task.cancelled():
            task.exception()

    async def _execute(self, tenant_id: str, source_url: str) -> SyncStats:
        lock = self._tenant_locks.setdefault(tenant_id, asyncio.Lock())
        self._tenant_users[tenant_id] = self._tenant_users.get(tenant_id, 0) + 1
        self._queued += 1
        admitted = False
        try:
            async with lock:
                async with self._slots:
                    self._queued -= 1
                    admitted = True
                    self._running += 1
                    console.print(
                        f"[cyan][SyncQueue] Starting sync for {tenant_id}[/cyan] "
                        f"[dim]({self._running}/{self.max_concurrency} active)[/dim]"
                    )
                    try:
                        return await self._run(tenant_id, source_url)
                    except Exception as e:
                        console.print(f"[red][SyncQueue] Sync failed for {tenant_id}: {e}[/red]")
                        raise
                    finally:
                        self._running -= 1
                        console.print(
                            f"[dim][SyncQueue] Finished {tenant_id} "
                            f"({self._running}/{self.max_concurrency} active, {self._queued} queued)[/dim]"
                        )
        finally:
            if not admitted:
                self._queued -= 1
            self._release_tenant(tenant_id)

    def _release_tenant(self, tenant_id: str) -> None:
        # Drop the lock once no run holds or waits on it
        self._tenant_users[tenant_id] -= 1
        if self._tenant_users[tenant_id] == 0:
            del self._tenant_users[tenant_id]
            del self._tenant_locks[tenant_id]

    def status(self) -> dict[str, int]:
        return {
            "running": self._running,
            "queued": self._queued,
            "max_concurrency": self.max_concurrency,
        }
