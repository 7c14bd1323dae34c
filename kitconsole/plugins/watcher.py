"""
Kit restart detector.

The only writer of the restart signal. npm rewrites package.json when it
finishes; the kit's own file watcher then restarts the prototype server.
The detector notices the manifest change, gives the kit time to go down,
and sets the signal once the kit answers HTTP again.
"""

import logging
import threading
import time
from pathlib import Path
from typing import Callable, Optional

import httpx

from kitconsole.plugins.restart import RestartSignal, restart_signal

logger = logging.getLogger(__name__)


def kit_is_up(kit_url: str, timeout: float = 2.0) -> bool:
    """Check whether the prototype kit answers HTTP."""
    try:
        with httpx.Client(timeout=timeout) as client:
            resp = client.get(kit_url)
            return resp.status_code < 500
    except httpx.HTTPError:
        return False


class KitRestartDetector:
    def __init__(
        self,
        manifest_path: Path,
        kit_url: str,
        signal: RestartSignal = restart_signal,
        interval: float = 1.0,
        settle_time: Optional[float] = None,
        probe: Optional[Callable[[], bool]] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.manifest_path = Path(manifest_path)
        self.kit_url = kit_url
        self.signal = signal
        self.interval = interval
        self.settle_time = settle_time if settle_time is not None else interval * 2
        self._probe = probe or (lambda: kit_is_up(self.kit_url))
        self._clock = clock
        self._baseline = self._mtime()
        self._changed_at: Optional[float] = None
        self._stop = threading.Event()
        self._thread: Optional[threading.Thread] = None

    def _mtime(self) -> Optional[float]:
        try:
            return self.manifest_path.stat().st_mtime
        except FileNotFoundError:
            return None

    def check_once(self) -> bool:
        """One detection step. Returns True once the signal is set."""
        if self.signal.is_set():
            return True

        if self._changed_at is None:
            if self._mtime() != self._baseline:
                self._changed_at = self._clock()
                logger.info(f"{self.manifest_path.name} changed, waiting for the kit to restart")
            return False

        # The kit may still be serving from before its restart
        if self._clock() - self._changed_at < self.settle_time:
            return False

        if self._probe():
            self.signal.set(True)
            return True
        return False

    def _run(self):
        while not self._stop.is_set():
            try:
                if self.check_once():
                    break
            except OSError as e:
                logger.warning(f"Restart detection step failed: {e}")
            self._stop.wait(self.interval)
        logger.debug("Kit restart detector stopped")

    def start(self) -> None:
        if self._thread is not None and self._thread.is_alive():
            return
        self._stop.clear()
        self._thread = threading.Thread(
            target=self._run, name="kit-restart-detector", daemon=True
        )
        self._thread.start()
        logger.debug(f"Watching {self.manifest_path} for kit restarts")

    def stop(self, timeout: float = 5.0) -> None:
        self._stop.set()
        if self._thread is not None:
            self._thread.join(timeout=timeout)
            self._thread = None
