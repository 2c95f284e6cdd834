# quillchain/core/scheduler.py
"""Timer and worker-pool primitives for the background reconciliation flows."""

import concurrent.futures
import threading
from typing import Callable, Optional

from quillchain.config import env_int
from quillchain.utils.console import print_info, print_warn


class PeriodicTask:
    """Runs ``func`` every ``interval`` seconds on a daemon thread until stopped.

    Exceptions raised by ``func`` are logged and the loop carries on with
    the next interval.
    """

    def __init__(self, name: str, interval: float, func: Callable[[], object],
                 run_immediately: bool = False):
        self.name = name
        self.interval = interval
        self.func = func
        self.run_immediately = run_immediately
        self._stop_event = threading.Event()
        self._thread: Optional[threading.Thread] = None

    @property
    def is_running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def _run_once(self):
        try:
            self.func()
        except Exception as e:
            print_warn(f"⚠️  {self.name} error: {e}")

    def _loop(self):
        if self.run_immediately:
            self._run_once()
        while not self._stop_event.wait(self.interval):
            self._run_once()

    def start(self) -> threading.Event:
        if self.is_running:
            return self._stop_event
        self._stop_event = threading.Event()
        self._thread = threading.Thread(target=self._loop, name=self.name, daemon=True)
        self._thread.start()
        print_info(f"🔄 Started {self.name} (interval: {self.interval}s)")
        return self._stop_event

    def stop(self, timeout: Optional[float] = None):
        self._stop_event.set()
        thread = self._thread
        if thread and thread is not threading.current_thread():
            thread.join(timeout)
        self._thread = None


class BackgroundRunner:
    """Fire-and-forget execution on a shared thread pool"""

    def __init__(self, max_workers: Optional[int] = None):
        workers = max_workers or env_int("QUILL_BACKGROUND_WORKERS", 4)
        self._pool = concurrent.futures.ThreadPoolExecutor(
            max_workers=max(1, workers), thread_name_prefix="quill-bg"
        )

    def submit(self, name: str, func: Callable, *args, **kwargs) -> concurrent.futures.Future:
        future = self._pool.submit(func, *args, **kwargs)

        def _report(done: concurrent.futures.Future):
            if done.cancelled():
                return
            error = done.exception()
            if error is not None:
                print_warn(f"⚠️  Background task {name} failed: {error}")

        future.add_done_callback(_report)
        return future

    def shutdown(self, wait: bool = True):
        self._pool.shutdown(wait=wait)
