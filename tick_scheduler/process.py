from __future__ import annotations

from collections import deque
from dataclasses import dataclass, field
from enum import Enum
from typing import Optional


class ProcessStatus(Enum):
    READY = "ready"
    RUNNING = "running"
    WAITING = "waiting"
    TERMINATED = "terminated"


@dataclass(frozen=True, slots=True)
class ResourceRequest:
    """Acquire ``resource_id`` at age ``at`` and hold it for ``duration`` ticks."""

    resource_id: int
    at: int
    duration: int

    def __post_init__(self) -> None:
        if self.resource_id < 0:
            msg = "resource_id cannot be negative"
            raise ValueError(msg)
        if self.at < 0:
            msg = "request age cannot be negative"
            raise ValueError(msg)
        if self.duration <= 0:
            msg = "request duration must be strictly positive"
            raise ValueError(msg)


@dataclass(frozen=True, slots=True)
class ProcessSpec:
    """Immutable process description produced by a workload."""

    pid: int
    arrival: int
    lifespan: int
    priority: int = 0
    requests: tuple[ResourceRequest, ...] = ()

    def __post_init__(self) -> None:
        if self.arrival < 0:
            msg = "arrival cannot be negative"
            raise ValueError(msg)
        if self.lifespan <= 0:
            msg = "lifespan must be strictly positive"
            raise ValueError(msg)
        previous_at = 0
        held_until: dict[int, int] = {}
        for request in self.requests:
            if held_until.get(request.resource_id, 0) > request.at:
                msg = f"resource {request.resource_id} is requested again while still held"
                raise ValueError(msg)
            held_until[request.resource_id] = request.at + request.duration
            if request.at >= self.lifespan:
                msg = f"request for resource {request.resource_id} starts after the process ends"
                raise ValueError(msg)
            if request.at + request.duration > self.lifespan:
                msg = f"request for resource {request.resource_id} outlives the process"
                raise ValueError(msg)
            if request.at < previous_at:
                msg = "requests must be ordered by age"
                raise ValueError(msg)
            previous_at = request.at


@dataclass(eq=False, slots=True)
class Process:
    """Mutable runtime record of a simulated process.

    Records compare by identity, so queues locate a process with ``is``.
    """

    spec: ProcessSpec
    status: ProcessStatus = ProcessStatus.READY
    age: int = 0
    effective_priority: int = 0
    slice_ticks: int = 0
    waiting_on: Optional[int] = None
    held: dict[int, int] = field(default_factory=dict)
    pending: deque[ResourceRequest] = field(default_factory=deque)
    first_run: Optional[int] = None
    finish: Optional[int] = None

    @classmethod
    def from_spec(cls, spec: ProcessSpec) -> Process:
        return cls(spec=spec, effective_priority=spec.priority, pending=deque(spec.requests))

    @property
    def pid(self) -> int:
        return self.spec.pid

    @property
    def arrival(self) -> int:
        return self.spec.arrival

    @property
    def lifespan(self) -> int:
        return self.spec.lifespan

    @property
    def priority(self) -> int:
        return self.spec.priority

    @property
    def remaining(self) -> int:
        return self.lifespan - self.age

    def is_complete(self) -> bool:
        return self.age >= self.lifespan

    def is_eligible(self) -> bool:
        """True when the process may keep the CPU it currently holds."""
        return self.status is not ProcessStatus.WAITING and self.status is not ProcessStatus.TERMINATED and not self.is_complete()

    def advance(self, now: int) -> None:
        if self.is_complete():
            msg = f"process {self.pid} has already used its whole lifespan"
            raise ValueError(msg)
        if self.first_run is None:
            self.first_run = now
        self.age += 1
        self.slice_ticks += 1

    def due_releases(self) -> list[int]:
        return sorted(rid for rid, until in self.held.items() if until <= self.age)

    def __repr__(self) -> str:
        return (
            f"Process(pid={self.pid}, status={self.status.name}, age={self.age}/{self.lifespan}, "
            f"prio={self.priority}/{self.effective_priority})"
        )
