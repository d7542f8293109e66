"""Executor factory used by the bundle fetch scheduler."""

from __future__ import annotations

from concurrent import futures


def create_executor(workers: int, *, name: str = "airgap-fetch") -> futures.ThreadPoolExecutor:
    """
    Return a thread pool sized for ``workers`` concurrent IO-bound tasks.

    Args:
        workers: Desired concurrency level; values below one are clamped to one.
        name: Thread name prefix, visible in thread dumps and log records.

    Returns:
        A :class:`~concurrent.futures.ThreadPoolExecutor`. Callers own the pool
        and should use it as a context manager so it is shut down on exit.
    """
    return futures.ThreadPoolExecutor(max_workers=max(1, workers), thread_name_prefix=name)
