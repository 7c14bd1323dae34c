"""
npm process launcher.

Commands run as detached children of the console: the HTTP handler returns
as soon as the operating system has accepted the process. Output goes to a
per-package log file under ``settings.LOG_DIR``.

Nothing here waits for npm. Spawn errors and non-zero exits are remembered
per package so that the next status poll can report them.
"""

import logging
import re
import subprocess
import threading
from pathlib import Path
from typing import Callable, Dict, Optional

from kitconsole.errors import LaunchFailure
from kitconsole.plugins.commands import CommandPlan
from kitconsole.utils.request_id import get_request_id

logger = logging.getLogger(__name__)

PopenFactory = Callable[..., subprocess.Popen]


def log_file_name(package_name: str) -> str:
    # "@scope/name" -> "npm-scope-name.log"
    return "npm-" + re.sub(r"[^A-Za-z0-9._-]+", "-", package_name).strip("-") + ".log"


class ProcessLauncher:
    def __init__(self, log_dir: Path, popen: PopenFactory = subprocess.Popen):
        self.log_dir = Path(log_dir)
        self._popen = popen
        self._lock = threading.Lock()
        self._processes: Dict[str, subprocess.Popen] = {}
        self._failures: Dict[str, LaunchFailure] = {}

    def log_path(self, package_name: str) -> Path:
        return self.log_dir / log_file_name(package_name)

    def launch(self, plan: CommandPlan) -> bool:
        """
        Start the command and return immediately.

        Returns:
            True if the process was started. False if spawning failed; the
            failure is logged and kept for the next status poll.
        """
        with self._lock:
            self._failures.pop(plan.package_name, None)

        logger.info(f"Running npm for {plan.package_name}: {plan.command_line} (cwd={plan.cwd})")

        try:
            self.log_dir.mkdir(parents=True, exist_ok=True)
            with open(self.log_path(plan.package_name), "a", encoding="utf-8") as log:
                request_id = get_request_id()
                if request_id:
                    log.write(f"# request {request_id}\n")
                log.write(f"$ {plan.command_line}\n")
                log.flush()
                process = self._popen(
                    plan.argv,
                    cwd=str(plan.cwd),
                    stdin=subprocess.DEVNULL,
                    stdout=log,
                    stderr=subprocess.STDOUT,
                    start_new_session=True,
                )
        except OSError as e:
            failure = LaunchFailure(
                f"Could not start '{plan.argv[0]}': {e}", plan.package_name
            )
            logger.error(f"Launch failed for {plan.package_name}: {e}")
            with self._lock:
                self._failures[plan.package_name] = failure
                self._processes.pop(plan.package_name, None)
            return False

        with self._lock:
            self._processes[plan.package_name] = process
        logger.debug(f"npm started for {plan.package_name} with pid {process.pid}")
        return True

    def last_failure(self, package_name: str) -> Optional[LaunchFailure]:
        """
        Failure recorded for the package's most recent launch, if any.

        A child that has already exited with a non-zero code counts as a
        failure too. Once the kit restarts the console may lose track of the
        child entirely; in that case only the manifest can tell.
        """
        with self._lock:
            failure = self._failures.get(package_name)
            if failure is not None:
                return failure
            process = self._processes.get(package_name)

        if process is None:
            return None

        returncode = process.poll()
        if returncode is None or returncode == 0:
            return None

        failure = LaunchFailure(
            f"npm exited with code {returncode}, see {self.log_path(package_name)}",
            package_name,
        )
        with self._lock:
            self._failures[package_name] = failure
            self._processes.pop(package_name, None)
        return failure

    def is_running(self, package_name: str) -> bool:
        with self._lock:
            process = self._processes.get(package_name)
        return process is not None and process.poll() is None
