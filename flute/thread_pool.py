"""Fixed-size pool of worker threads executing queued tasks."""

from __future__ import annotations

import threading
from collections import deque
from concurrent.futures import Future
from typing import Any, Callable, Deque, List


class ThreadPool:
    """Runs submitted callables on a fixed set of worker threads.

    On shutdown the workers finish every task already queued before exiting.
    """

    def __init__(self) -> None:
        self._running = False
        self._workers: List[threading.Thread] = []
        self._tasks: Deque[Callable[[], None]] = deque()
        self._condition = threading.Condition()

    def start(self, size: int) -> None:
        """Start ``size`` worker threads."""
        with self._condition:
            if self._running:
                raise RuntimeError("thread pool is already running.")
            self._running = True
        for index in range(size):
            worker = threading.Thread(target=self._run, name=f"flute-worker-{index}", daemon=True)
            worker.start()
            self._workers.append(worker)

    def execute(self, func: Callable[..., Any], *args: Any, **kwargs: Any) -> Future:
        """Queue ``func(*args, **kwargs)`` and return a future for its result."""
        future: Future = Future()

        def task() -> None:
            if not future.set_running_or_notify_cancel():
                return
            try:
                result = func(*args, **kwargs)
            except BaseException as exc:
                future.set_exception(exc)
            else:
                future.set_result(result)

        with self._condition:
            if not self._running:
                raise RuntimeError("execute task on not running thread pool.")
            self._tasks.append(task)
            self._condition.notify()
        return future

    def shutdown(self) -> None:
        """Stop accepting tasks, drain the queue and join all workers."""
        with self._condition:
            self._running = False
            self._condition.notify_all()
        for worker in self._workers:
            worker.join()
        self._workers.clear()

    def _run(self) -> None:
        while True:
            with self._condition:
                self._condition.wait_for(lambda: not self._running or bool(self._tasks))
                if not self._running and not self._tasks:
                    return
                task = self._tasks.popleft()
            task()