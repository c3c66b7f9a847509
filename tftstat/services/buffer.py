# tftstat/services/buffer.py
# ============================================================================
# Exécution bornée d'une file de coroutines (N en vol au maximum)
# ============================================================================

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Iterable, Optional

log = logging.getLogger(__name__)

TaskFactory = Callable[[], Awaitable[Any]]
ResultHandler = Callable[[int, Any, Optional[BaseException]], None]


@dataclass
class BufferStats:
    """Résumé d'un passage de run_bounded."""
    submitted: int = 0
    succeeded: int = 0
    failed: int = 0
    peak_in_flight: int = 0


async def run_bounded(
    queue: Iterable[TaskFactory],
    limit: int,
    on_result: ResultHandler,
) -> BufferStats:
    """
    Run not-yet-started tasks with at most ``limit`` of them in flight.

    Each item of ``queue`` is a zero-argument callable returning an awaitable;
    it is only invoked when a slot frees up. ``on_result(index, result, error)``
    is called as each task finishes, in completion order, with ``error`` set
    when the task raised. A failing task never cancels its siblings.

    Args:
        queue: task factories, started in queue order
        limit: concurrency ceiling (>= 1)
        on_result: handler called once per task

    Returns:
        BufferStats for the run
    """
    if limit < 1:
        raise ValueError(f"limit must be >= 1, got {limit}")

    pending = iter(enumerate(queue))
    in_flight: dict[asyncio.Task, int] = {}
    stats = BufferStats()

    def _deliver(index: int, result: Any, error: Optional[BaseException]) -> None:
        if error is None:
            stats.succeeded += 1
        else:
            stats.failed += 1
        try:
            on_result(index, result, error)
        except Exception:
            log.exception("Result handler failed for task #%d", index)

    def _fill() -> None:
        while len(in_flight) < limit:
            try:
                index, factory = next(pending)
            except StopIteration:
                return
            stats.submitted += 1
            try:
                task = asyncio.ensure_future(factory())
            except Exception as e:
                # La fabrique elle-même a échoué : compte comme une tâche en erreur
                _deliver(index, None, e)
                continue
            in_flight[task] = index
            stats.peak_in_flight = max(stats.peak_in_flight, len(in_flight))

    try:
        _fill()
        while in_flight:
            done, _ = await asyncio.wait(in_flight, return_when=asyncio.FIRST_COMPLETED)
            for task in done:
                index = in_flight.pop(task)
                if task.cancelled():
                    _deliver(index, None, asyncio.CancelledError())
                elif task.exception() is not None:
                    _deliver(index, None, task.exception())
                else:
                    _deliver(index, task.result(), None)
                _fill()
    except asyncio.CancelledError:
        for task in in_flight:
            task.cancel()
        raise

    return stats
