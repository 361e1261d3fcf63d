"""Error types raised by peek."""


class PeekError(Exception):
    """Base class for every error peek reports to the operator."""


class ConfigurationError(PeekError):
    """Neither or both of a command and a pid were given, or a setting is invalid."""


class SpawnError(PeekError):
    """The target executable could not be located or started."""


class NoSuchProcess(PeekError):
    """No process with the given pid exists."""

    def __init__(self, pid: int, message: str | None = None) -> None:
        self.pid = pid
        super().__init__(message or f"no such process: {pid}")


class ProcessDisappeared(NoSuchProcess):
    """The target vanished while it was being sampled."""

    def __init__(self, pid: int) -> None:
        super().__init__(pid, f"process {pid} disappeared while being sampled")


class SignalSetupError(PeekError):
    """The interrupt handler could not be installed."""


class OutputError(PeekError):
    """The finished run could not be written out."""


class NotImplementedFormatError(PeekError, NotImplementedError):
    """An accepted output format that has no renderer yet."""


class SinkError(PeekError):
    """The sink was used out of order (run still going, or consumed twice)."""
