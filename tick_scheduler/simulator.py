from __future__ import annotations

import logging
from collections import deque
from dataclasses import dataclass
from typing import Sequence

from .context import SimulationContext
from .errors import DeadlockDetected, PolicyNotImplemented, QueueConsistencyViolation, SimulationLimitExceeded
from .process import Process, ProcessSpec, ProcessStatus
from .scheduler import Scheduler, validate_scheduler

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class RunSegment:
    pid: int
    start: int
    length: int


@dataclass(slots=True)
class SimulationResult:
    processes: list[Process]
    timeline: list[int | None]
    total_ticks: int
    context_switches: int
    busy_ticks: int

    @property
    def utilization(self) -> float:
        if self.total_ticks == 0:
            return 0.0
        return self.busy_ticks / self.total_ticks

    def segments(self) -> list[RunSegment]:
        """Collapse the timeline into consecutive runs of the same process."""

        segments: list[RunSegment] = []
        start = 0
        for tick in range(1, len(self.timeline) + 1):
            if tick < len(self.timeline) and self.timeline[tick] == self.timeline[start]:
                continue
            pid = self.timeline[start]
            if pid is not None:
                segments.append(RunSegment(pid=pid, start=start, length=tick - start))
            start = tick
        return segments

    def run_order(self) -> list[int]:
        return [segment.pid for segment in self.segments()]


@dataclass(slots=True)
class SimulationConfig:
    nr_resources: int = 32
    max_ticks: int = 100_000
    check_invariants: bool = True
    dump_status: bool = False

    def __post_init__(self) -> None:
        if self.nr_resources <= 0:
            msg = "nr_resources must be strictly positive"
            raise ValueError(msg)
        if self.max_ticks <= 0:
            msg = "max_ticks must be strictly positive"
            raise ValueError(msg)


class Simulation:
    """Tick-driven simulation that asks a policy which process runs next."""

    def __init__(self, scheduler: Scheduler, specs: Sequence[ProcessSpec], config: SimulationConfig | None = None) -> None:
        validate_scheduler(scheduler)
        self.scheduler = scheduler
        self.config = config or SimulationConfig()
        self._specs = sorted(specs, key=lambda s: (s.arrival, s.pid))
        self._check_specs()
        self._pending: deque[ProcessSpec] = deque(self._specs)
        self.ctx = SimulationContext(nr_resources=self.config.nr_resources)
        self._timeline: list[int | None] = []
        self._completed: list[Process] = []
        self._context_switches = 0
        self._busy_ticks = 0

    def run(self) -> SimulationResult:
        status = self.scheduler.initialize(self.ctx)
        if status != 0:
            msg = f"policy {self.scheduler.name} failed to initialize (status {status})"
            raise PolicyNotImplemented(msg)
        logger.info("running %d processes under %s", len(self._specs), self.scheduler.name)

        while self._pending or self.ctx.has_live_processes():
            if self.ctx.ticks >= self.config.max_ticks:
                msg = f"simulation did not finish within {self.config.max_ticks} ticks"
                raise SimulationLimitExceeded(msg)
            self.step()

        self.scheduler.finalize(self.ctx)
        logger.info(
            "%s finished after %d ticks with %d context switches",
            self.scheduler.name,
            self.ctx.ticks,
            self._context_switches,
        )
        return SimulationResult(
            processes=sorted(self._completed, key=lambda p: p.pid),
            timeline=list(self._timeline),
            total_ticks=self.ctx.ticks,
            context_switches=self._context_switches,
            busy_ticks=self._busy_ticks,
        )

    def step(self) -> Process | None:
        """Simulate one tick and return the process that ran during it."""

        ctx = self.ctx
        self._fork_arrivals()

        previous = ctx.current
        if previous is not None and previous.status is ProcessStatus.RUNNING:
            self._service_requests(previous)

        current = self._dispatch(previous)
        if current is None:
            self._timeline.append(None)
            if not self._pending and not ctx.ready_queue and ctx.has_live_processes():
                blocked = ", ".join(str(p.pid) for p in ctx.live_processes())
                msg = f"tick {ctx.ticks}: processes {blocked} are blocked and nothing can run"
                raise DeadlockDetected(msg)
        else:
            current.advance(ctx.ticks)
            self._busy_ticks += 1
            self._timeline.append(current.pid)
            if current.is_complete():
                self._terminate(current)

        if self.config.dump_status:
            logger.debug("status at tick %d\n%s", ctx.ticks, ctx.dump_status())
        if self.config.check_invariants:
            ctx.check_consistency()
        ctx.ticks += 1
        return current

    def _fork_arrivals(self) -> None:
        while self._pending and self._pending[0].arrival <= self.ctx.ticks:
            process = Process.from_spec(self._pending.popleft())
            self.ctx.admit(process)
            self.scheduler.on_fork(self.ctx, process)
            logger.debug("tick %d: forked process %d", self.ctx.ticks, process.pid)

    def _dispatch(self, previous: Process | None) -> Process | None:
        ctx = self.ctx
        # Each denied acquire parks one process, so the retries are bounded.
        for _ in range(len(ctx.processes) + 1):
            chosen = self.scheduler.schedule(ctx)
            ctx.current = chosen
            if chosen is None:
                return None
            if chosen.status is ProcessStatus.WAITING or chosen.status is ProcessStatus.TERMINATED:
                msg = f"{self.scheduler.name} scheduled process {chosen.pid} with status {chosen.status.name}"
                raise QueueConsistencyViolation(msg)
            if chosen.is_complete():
                msg = f"{self.scheduler.name} scheduled finished process {chosen.pid}"
                raise QueueConsistencyViolation(msg)

            if chosen is not previous:
                chosen.slice_ticks = 0
            chosen.status = ProcessStatus.RUNNING
            if self._service_requests(chosen):
                if chosen is not previous:
                    self._context_switches += 1
                    logger.debug("tick %d: dispatch process %d", ctx.ticks, chosen.pid)
                return chosen
        msg = f"tick {ctx.ticks}: {self.scheduler.name} kept choosing blocked processes"
        raise QueueConsistencyViolation(msg)

    def _service_requests(self, process: Process) -> bool:
        """Issue the releases and acquires due at the process's age.

        Returns False when an acquire was denied and the process now waits.
        """
        for resource_id in process.due_releases():
            self.scheduler.release(self.ctx, resource_id)
            del process.held[resource_id]
        while process.pending and process.pending[0].at <= process.age:
            request = process.pending[0]
            if not self.scheduler.acquire(self.ctx, request.resource_id):
                return False
            process.pending.popleft()
            process.held[request.resource_id] = process.age + request.duration
        return True

    def _terminate(self, process: Process) -> None:
        for resource_id in sorted(process.held):
            self.scheduler.release(self.ctx, resource_id)
        process.held.clear()
        process.status = ProcessStatus.TERMINATED
        process.finish = self.ctx.ticks + 1
        self._completed.append(process)
        self.scheduler.on_exit(self.ctx, process)
        logger.debug("tick %d: process %d terminated", self.ctx.ticks, process.pid)

    def _check_specs(self) -> None:
        seen: set[int] = set()
        for spec in self._specs:
            if spec.pid in seen:
                msg = f"duplicate pid {spec.pid}"
                raise ValueError(msg)
            seen.add(spec.pid)
            for request in spec.requests:
                if request.resource_id >= self.config.nr_resources:
                    msg = f"process {spec.pid} requests resource {request.resource_id} outside the table"
                    raise ValueError(msg)
