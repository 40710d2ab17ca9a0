from __future__ import annotations

import logging
import threading
from concurrent.futures import Future, ThreadPoolExecutor
from typing import Any, Callable, Dict, Optional, Union

from netbuild.core.build.config import BuildConfig
from netbuild.core.pipeline.events import BuildEvent, CompleteEvent, ErrorEvent
from netbuild.core.pipeline.runner import run_build

logger = logging.getLogger(__name__)

MessageHandler = Callable[[Dict[str, Any]], None]


class BuildInProgress(RuntimeError):
    """A build was submitted while another one is still running."""


class BuildWorker:
    """
    Runs builds off the caller's thread, one at a time.

    Each event is handed to on_message as a plain message dict
    ({"type": "progress" | "complete" | "error", ...}) in the order it was produced.
    """

    def __init__(self) -> None:
        self._executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="netbuild")
        self._lock = threading.Lock()
        self._current: Optional[Future] = None

    @property
    def busy(self) -> bool:
        with self._lock:
            return self._current is not None and not self._current.done()

    def submit(
        self,
        config: Union[BuildConfig, Dict[str, Any]],
        on_message: MessageHandler,
    ) -> "Future[BuildEvent]":
        with self._lock:
            if self._current is not None and not self._current.done():
                raise BuildInProgress("A build is already running; wait for it to finish.")
            self._current = self._executor.submit(self._run, config, on_message)
            return self._current

    def wait(self, timeout: Optional[float] = None) -> Optional[BuildEvent]:
        """Block until the running build ends; returns its terminal event."""
        with self._lock:
            current = self._current
        if current is None:
            return None
        return current.result(timeout=timeout)

    def shutdown(self, wait: bool = True) -> None:
        self._executor.shutdown(wait=wait)

    def __enter__(self) -> "BuildWorker":
        return self

    def __exit__(self, *exc: Any) -> None:
        self.shutdown()

    @staticmethod
    def _run(config: Union[BuildConfig, Dict[str, Any]], on_message: MessageHandler) -> BuildEvent:
        last: Optional[BuildEvent] = None
        for event in run_build(config):
            last = event
            try:
                on_message(event.to_message())
            except Exception:
                logger.exception("Message handler failed on %s event", type(event).__name__)
        assert isinstance(last, (CompleteEvent, ErrorEvent))
        return last
