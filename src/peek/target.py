"""Target process controller for peek."""

import logging
import os
import queue
import shutil
import subprocess
import threading
from collections.abc import Sequence
from pathlib import Path

import psutil

from peek.errors import NoSuchProcess, SpawnError
from peek.metrics import MetricsProvider
from peek.models import ExitStatus, TargetProcess

logger = logging.getLogger(__name__)

# How long kill() waits for the exit status after signalling the target
KILL_TIMEOUT = 2.0

# How often waiter threads wake up to check for close()
WATCH_POLL = 0.2


class ExitNotifier:
    """
    One-shot notification carrying a target's exit status.

    The waiter thread delivers into a single-slot queue. The consumer side
    latches the status once received, so poll() keeps returning it.
    """

    def __init__(self) -> None:
        """Initialize an undelivered notifier."""
        self._queue: queue.Queue[ExitStatus] = queue.Queue(maxsize=1)
        self._status: ExitStatus | None = None

    def deliver(self, status: ExitStatus) -> None:
        """Deliver the exit status. Later deliveries are dropped."""
        try:
            self._queue.put_nowait(status)
        except queue.Full:
            logger.debug("exit status already delivered, dropping %s", status)

    def poll(self) -> ExitStatus | None:
        """Return the exit status if it has arrived, without blocking."""
        if self._status is None:
            try:
                self._status = self._queue.get_nowait()
            except queue.Empty:
                pass
        return self._status

    def wait(self, timeout: float | None = None) -> ExitStatus | None:
        """Block up to timeout seconds for the exit status."""
        if self._status is None:
            try:
                self._status = self._queue.get(timeout=timeout)
            except queue.Empty:
                pass
        return self._status


def resolve_executable(command: str) -> str:
    """
    Resolve command to an executable path.

    Tries a bare command on PATH first, then a path relative to the current
    working directory.

    Raises:
        SpawnError: Neither lookup found an executable file.
    """
    if not command:
        raise SpawnError("no command given")

    on_path = shutil.which(command)
    if on_path is not None:
        return on_path

    local = Path.cwd() / command
    if local.is_file() and os.access(local, os.X_OK):
        return str(local)

    raise SpawnError(
        f"cannot find executable {command!r}: not on PATH and no executable at {local}"
    )


def _wait_for_child(
    popen: subprocess.Popen, notifier: ExitNotifier, stop: threading.Event
) -> None:
    while not stop.is_set():
        try:
            returncode = popen.wait(timeout=WATCH_POLL)
        except subprocess.TimeoutExpired:
            continue
        notifier.deliver(ExitStatus(returncode))
        return


def _watch_attached(pid: int, notifier: ExitNotifier, stop: threading.Event) -> None:
    # Not our child, so the OS usually won't tell us the return code
    try:
        proc = psutil.Process(pid)
    except psutil.NoSuchProcess:
        notifier.deliver(ExitStatus(None))
        return

    while not stop.is_set():
        try:
            returncode = proc.wait(timeout=WATCH_POLL)
        except psutil.TimeoutExpired:
            continue
        except psutil.NoSuchProcess:
            returncode = None
        notifier.deliver(ExitStatus(returncode))
        return


class TargetProcessController:
    """
    Spawns or attaches to the target process and can terminate it.

    Waiting for the target's exit runs on a daemon thread so the sampling
    loop never blocks on it. The thread's only side effect is delivering
    the exit status into the notifier. close() stops and joins it, which
    matters for attached targets that outlive the run.
    """

    def __init__(self, provider: MetricsProvider, kill_timeout: float = KILL_TIMEOUT) -> None:
        """
        Initialize the controller.

        Args:
            provider: Metrics provider used to validate attach targets.
            kill_timeout: How long kill() waits for the target to exit.
        """
        self._provider = provider
        self._kill_timeout = kill_timeout
        self._popen: subprocess.Popen | None = None
        self._notifier: ExitNotifier | None = None
        self._thread: threading.Thread | None = None
        self._stop_event = threading.Event()
        self._kill_sent = False

    @property
    def notifier(self) -> ExitNotifier | None:
        return self._notifier

    def spawn(self, command: str, args: Sequence[str] = ()) -> tuple[TargetProcess, ExitNotifier]:
        """
        Launch command with args and start waiting for it in the background.

        Raises:
            SpawnError: The executable could not be found or started.
        """
        executable = resolve_executable(command)
        argv = [executable, *args]

        try:
            popen = subprocess.Popen(argv)
        except OSError as exc:
            raise SpawnError(f"cannot start {executable!r}: {exc}") from exc

        logger.debug("spawned %s as pid %d", " ".join(argv), popen.pid)
        self._popen = popen
        notifier = self._start_watcher(_wait_for_child, popen, "TargetWaiter")
        return TargetProcess(pid=popen.pid, owned=True, command=tuple(argv)), notifier

    def attach(self, pid: int) -> tuple[TargetProcess, ExitNotifier]:
        """
        Attach to an existing process.

        Raises:
            NoSuchProcess: No process with this pid is running.
        """
        if not self._provider.exists(pid):
            raise NoSuchProcess(pid)

        logger.debug("attached to pid %d", pid)
        notifier = self._start_watcher(_watch_attached, pid, "TargetWatcher")
        return TargetProcess(pid=pid, owned=False), notifier

    def kill(self, target: TargetProcess) -> None:
        """
        Kill the target if peek spawned it. Best effort, sent at most once.

        Failures are logged, never raised: the target may already be gone.
        """
        if not target.owned:
            logger.debug("leaving attached process %d running", target.pid)
            return
        if self._kill_sent or self._popen is None:
            return
        self._kill_sent = True

        try:
            self._popen.kill()
        except OSError as exc:
            logger.warning("could not kill process %d: %s", target.pid, exc)
            return

        if self._notifier is not None and self._notifier.wait(self._kill_timeout) is None:
            logger.warning(
                "process %d still running %.1fs after kill", target.pid, self._kill_timeout
            )

    def close(self) -> None:
        """Stop the waiter thread and wait for it to finish. Safe to call twice."""
        self._stop_event.set()
        if self._thread is None:
            return
        self._thread.join(timeout=self._kill_timeout)
        if self._thread.is_alive():
            logger.warning("%s thread did not stop", self._thread.name)

    def _start_watcher(self, watch, arg, name: str) -> ExitNotifier:
        notifier = ExitNotifier()
        self._notifier = notifier
        self._thread = threading.Thread(
            target=watch,
            args=(arg, notifier, self._stop_event),
            daemon=True,
            name=name,
        )
        self._thread.start()
        return notifier
