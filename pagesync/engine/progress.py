"""Scan progress reporter consumed by the UI layer.

Pure state holder: a phase message, an integer percentage and an
``is_scanning`` flag.  Setting a message without an explicit progress
defaults to 50 (or 0 when the message is cleared).  Listeners are called
synchronously after every change.
"""

from __future__ import annotations

from collections.abc import Callable

from loguru import logger

ProgressListener = Callable[["ScanProgress"], None]


class ScanProgress:
    def __init__(self) -> None:
        self._phase: str | None = None
        self._progress = 0
        self._scanning = False
        self._listeners: list[ProgressListener] = []

    # -- State -----------------------------------------------------------------

    @property
    def phase(self) -> str | None:
        return self._phase

    @property
    def progress(self) -> int:
        return self._progress

    @property
    def is_scanning(self) -> bool:
        return self._scanning

    # -- Mutation --------------------------------------------------------------

    def set_phase(self, message: str | None, progress: int | None = None) -> None:
        if progress is None:
            progress = 50 if message is not None else 0
        self._phase = message
        self._progress = max(0, min(100, int(progress)))
        logger.debug("Scan phase: {} ({}%)", message, self._progress)
        self._notify()

    def set_scanning(self, scanning: bool) -> None:
        self._scanning = scanning
        self._notify()

    def fail(self, message: str) -> None:
        """Terminal failure: progress drops to 0 with an error message."""
        self.set_phase(f"Error: {message}", 0)

    def reset(self) -> None:
        self._phase = None
        self._progress = 0
        self._scanning = False
        self._notify()

    # -- Listeners -------------------------------------------------------------

    def subscribe(self, listener: ProgressListener) -> Callable[[], None]:
        """Register *listener*; returns a function that unregisters it."""
        self._listeners.append(listener)

        def _unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return _unsubscribe

    def _notify(self) -> None:
        for listener in list(self._listeners):
            listener(self)
