"""Data models for peek."""

import uuid
from dataclasses import dataclass, field
from enum import Enum


class TerminationCause(Enum):
    """Why the sampling loop stopped."""

    RUNNING = "running"
    STOPPED_BY_EXIT = "exited"
    STOPPED_BY_INTERRUPT = "interrupted"
    STOPPED_BY_ERROR = "error"


@dataclass(slots=True, frozen=True)
class ExitStatus:
    """Exit status of a target process."""

    returncode: int | None  # None when the OS does not report it (attached targets)

    @property
    def signal(self) -> int | None:
        """Signal number that killed the process, if any (POSIX only)."""
        if self.returncode is not None and self.returncode < 0:
            return -self.returncode
        return None


@dataclass(slots=True)
class TargetProcess:
    """The OS process being observed."""

    pid: int
    owned: bool  # True when peek spawned it, False when attached
    command: tuple[str, ...] = ()
    exit_status: ExitStatus | None = None

    @property
    def has_exited(self) -> bool:
        return self.exit_status is not None


@dataclass(slots=True, frozen=True)
class Sample:
    """Immutable measurement of the target process at one point in time."""

    run_id: uuid.UUID
    sequence: int
    pid: int
    name: str
    cpu_percent: float  # 0.0 - 100.0, normalized by logical CPU count
    memory_rss: int  # Bytes
    memory_vms: int  # Bytes
    disk_read_bytes: int  # Cumulative
    disk_write_bytes: int  # Cumulative
    timestamp: float  # Seconds since the epoch, not emitted

    def to_record(self) -> dict:
        """Output record in wire order."""
        return {
            "uuid": str(self.run_id),
            "sample": self.sequence,
            "pid": self.pid,
            "name": self.name,
            "cpu": self.cpu_percent,
            "mem": self.memory_rss,
            "virt_mem": self.memory_vms,
            "disk_read": self.disk_read_bytes,
            "disk_write": self.disk_write_bytes,
        }


@dataclass(slots=True)
class Run:
    """
    One execution of peek against one target process.

    Samples are append-only while the run is RUNNING and read-only once a
    termination cause has been recorded.
    """

    pid: int
    run_id: uuid.UUID = field(default_factory=uuid.uuid4)
    samples: list[Sample] = field(default_factory=list)
    cause: TerminationCause = TerminationCause.RUNNING
    exit_status: ExitStatus | None = None
    error: Exception | None = None

    @property
    def is_running(self) -> bool:
        return self.cause is TerminationCause.RUNNING

    @property
    def next_sequence(self) -> int:
        return len(self.samples)

    def append(self, sample: Sample) -> None:
        """
        Append a sample to the run.

        Raises:
            ValueError: If the run has stopped, or the sample breaks the
                sequence or identity invariants.
        """
        if not self.is_running:
            raise ValueError(f"run {self.run_id} already stopped ({self.cause.value})")
        if sample.run_id != self.run_id or sample.pid != self.pid:
            raise ValueError(
                f"sample belongs to run {sample.run_id} pid {sample.pid}, "
                f"expected run {self.run_id} pid {self.pid}"
            )
        if sample.sequence != self.next_sequence:
            raise ValueError(
                f"sample sequence {sample.sequence} out of order, expected {self.next_sequence}"
            )
        self.samples.append(sample)

    def stop(
        self,
        cause: TerminationCause,
        exit_status: ExitStatus | None = None,
        error: Exception | None = None,
    ) -> None:
        """Record the termination cause. Only the first call has any effect."""
        if not self.is_running or cause is TerminationCause.RUNNING:
            return
        self.cause = cause
        self.exit_status = exit_status
        self.error = error

    def records(self) -> list[dict]:
        """All samples as output records, in sequence order."""
        return [sample.to_record() for sample in self.samples]
