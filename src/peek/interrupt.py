"""Interrupt handling for peek."""

import signal
import threading
from collections.abc import Iterable

from peek.errors import SignalSetupError


class InterruptLatch:
    """
    Remembers that a stop was requested.

    The first fire() latches; later ones are no-ops. Checks never block
    unless wait() is given a timeout.
    """

    def __init__(self) -> None:
        """Initialize an unfired latch."""
        self._event = threading.Event()
        self._previous: dict[int, object] = {}

    @property
    def fired(self) -> bool:
        """True once a stop has been requested."""
        return self._event.is_set()

    def fire(self) -> None:
        """Request a stop."""
        self._event.set()

    def wait(self, timeout: float | None = None) -> bool:
        """Sleep up to timeout seconds, waking early if the latch fires."""
        return self._event.wait(timeout=timeout)

    def restore(self) -> None:
        """Put back the signal handlers that were replaced at install time."""
        for signum, handler in self._previous.items():
            # None means the handler wasn't installed from Python
            signal.signal(signum, handler if handler is not None else signal.SIG_DFL)
        self._previous.clear()


def install_interrupt_handler(
    signals: Iterable[int] = (signal.SIGINT,),
) -> InterruptLatch:
    """
    Install a handler that fires a new latch on any of the given signals.

    Must run on the main thread, once, before sampling starts.

    Raises:
        SignalSetupError: A handler could not be installed.
    """
    latch = InterruptLatch()

    def handle_interrupt(signum, frame) -> None:
        latch.fire()

    for signum in signals:
        try:
            latch._previous[signum] = signal.signal(signum, handle_interrupt)
        except (ValueError, OSError) as exc:
            latch.restore()
            raise SignalSetupError(f"cannot install handler for signal {signum}: {exc}") from exc

    return latch
