"""
Kit restart signal.

The prototype kit restarts itself when npm rewrites package.json. Once that
has been observed, status polls can trust the manifest: npm has finished and
the kit has reloaded its dependencies.

Lifecycle: False at process start, set to True at most once by the restart
detector, never reset. Everything else only reads it.
"""

import logging
import threading

logger = logging.getLogger(__name__)


class RestartSignal:
    def __init__(self):
        self._lock = threading.Lock()
        self._restarted = False

    def set(self, value: bool = True) -> None:
        with self._lock:
            if self._restarted:
                if not value:
                    logger.debug("Ignoring attempt to clear the kit restart signal")
                return
            if value:
                self._restarted = True
                logger.info("Kit restart detected")

    def is_set(self) -> bool:
        with self._lock:
            return self._restarted

    def _reset(self) -> None:
        with self._lock:
            self._restarted = False


restart_signal = RestartSignal()


def set_kit_restarted(value: bool) -> None:
    restart_signal.set(value)


def has_kit_restarted() -> bool:
    return restart_signal.is_set()


def reset_for_tests() -> None:
    """Only the test suite may clear the signal."""
    restart_signal._reset()
