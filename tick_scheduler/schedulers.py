from __future__ import annotations

import inspect
import logging
from collections.abc import Callable, Iterable

from .context import Resource, SimulationContext
from .errors import PolicyNotImplemented
from .process import Process, ProcessStatus
from .scheduler import Scheduler, validate_scheduler

logger = logging.getLogger(__name__)

SchedulerFactory = Callable[..., Scheduler]


def _first_min(processes: Iterable[Process], key: Callable[[Process], int]) -> Process | None:
    """Return the process with the smallest key; the earliest one wins ties."""
    best: Process | None = None
    for process in processes:
        if best is None or key(process) < key(best):
            best = process
    return best


def _first_max(processes: Iterable[Process], key: Callable[[Process], int]) -> Process | None:
    best: Process | None = None
    for process in processes:
        if best is None or key(process) > key(best):
            best = process
    return best


def _eligible_current(ctx: SimulationContext) -> Process | None:
    current = ctx.current
    if current is not None and current.is_eligible():
        return current
    return None


def _requeue_front(ctx: SimulationContext, process: Process) -> None:
    process.status = ProcessStatus.READY
    ctx.ready_queue.appendleft(process)


class FifoScheduler(Scheduler):
    """Non-preemptive first-in, first-out scheduler."""

    name = "FIFO"

    def schedule(self, ctx: SimulationContext) -> Process | None:
        current = _eligible_current(ctx)
        if current is not None:
            return current
        if not ctx.ready_queue:
            return None
        return ctx.ready_queue.popleft()


class SjfScheduler(Scheduler):
    """Non-preemptive shortest-job-first scheduler."""

    name = "Shortest-Job First"

    def schedule(self, ctx: SimulationContext) -> Process | None:
        current = _eligible_current(ctx)
        if current is not None:
            return current
        shortest = _first_min(ctx.ready_queue, key=lambda p: p.lifespan)
        if shortest is None:
            return None
        ctx.ready_queue.remove(shortest)
        return shortest


class SrtfScheduler(Scheduler):
    """Preemptive shortest-remaining-time-first scheduler."""

    name = "Shortest Remaining Time First"

    def schedule(self, ctx: SimulationContext) -> Process | None:
        current = _eligible_current(ctx)
        candidate = _first_min(ctx.ready_queue, key=lambda p: p.remaining)
        if candidate is None:
            return current
        if current is not None and current.remaining <= candidate.remaining:
            return current

        ctx.ready_queue.remove(candidate)
        if current is not None:
            logger.debug(
                "tick %d: process %d (remaining %d) preempts %d (remaining %d)",
                ctx.ticks,
                candidate.pid,
                candidate.remaining,
                current.pid,
                current.remaining,
            )
            _requeue_front(ctx, current)
        return candidate


class RoundRobinScheduler(Scheduler):
    """Preemptive round-robin scheduler with a fixed time quantum."""

    name = "Round-Robin"

    def __init__(self, quantum: int = 1) -> None:
        if quantum < 1:
            msg = "quantum must be at least one tick"
            raise ValueError(msg)
        self.quantum = quantum

    def schedule(self, ctx: SimulationContext) -> Process | None:
        current = _eligible_current(ctx)
        if current is not None:
            if current.slice_ticks < self.quantum:
                return current
            logger.debug("tick %d: quantum of process %d expired", ctx.ticks, current.pid)
            current.status = ProcessStatus.READY
            ctx.ready_queue.append(current)

        if not ctx.ready_queue:
            return None
        next_process = ctx.ready_queue.popleft()
        next_process.slice_ticks = 0
        return next_process

    def __repr__(self) -> str:
        return f"{type(self).__name__}(quantum={self.quantum})"


class PriorityScheduler(Scheduler):
    """Preemptive priority scheduler with priority-ordered wait queues.

    Larger ``effective_priority`` values are more urgent. A running process
    keeps the CPU until a ready process has a strictly higher priority, and
    ``release`` wakes the most urgent waiter because waiters are kept in
    descending priority order.
    """

    name = "Priority"

    def schedule(self, ctx: SimulationContext) -> Process | None:
        current = _eligible_current(ctx)
        candidate = _first_max(ctx.ready_queue, key=lambda p: p.effective_priority)
        if candidate is None:
            return current
        if current is not None and current.effective_priority >= candidate.effective_priority:
            return current

        ctx.ready_queue.remove(candidate)
        if current is not None:
            logger.debug(
                "tick %d: process %d (priority %d) preempts %d (priority %d)",
                ctx.ticks,
                candidate.pid,
                candidate.effective_priority,
                current.pid,
                current.effective_priority,
            )
            _requeue_front(ctx, current)
        return candidate

    def enqueue_waiter(self, resource: Resource, process: Process) -> None:
        for index, waiter in enumerate(resource.wait_queue):
            if waiter.effective_priority < process.effective_priority:
                resource.wait_queue.insert(index, process)
                return
        resource.wait_queue.append(process)


class PipScheduler(PriorityScheduler):
    """Priority scheduler with the priority inheritance protocol.

    A blocked process lends its effective priority to the owner of the
    resource it waits for, and on along the chain of blocked owners. An
    owner drops back to the highest priority still lent to it once it
    releases a resource.
    """

    name = "Priority + Priority Inheritance Protocol"

    def acquire(self, ctx: SimulationContext, resource_id: int) -> bool:
        if super().acquire(ctx, resource_id):
            return True
        waiter = ctx.current
        if waiter is not None:
            self._inherit(ctx, waiter)
        return False

    def release(self, ctx: SimulationContext, resource_id: int) -> None:
        super().release(ctx, resource_id)
        releaser = ctx.current
        if releaser is None:
            return
        restored = self.inherited_priority(ctx, releaser)
        if restored != releaser.effective_priority:
            logger.debug(
                "tick %d: process %d priority %d -> %d after releasing resource %d",
                ctx.ticks,
                releaser.pid,
                releaser.effective_priority,
                restored,
                resource_id,
            )
        releaser.effective_priority = restored

    def inherited_priority(self, ctx: SimulationContext, process: Process) -> int:
        """Static priority raised by every waiter on resources the process still owns."""
        priority = process.priority
        for resource in ctx.owned_by(process):
            for waiter in resource.wait_queue:
                priority = max(priority, waiter.effective_priority)
        return priority

    def _inherit(self, ctx: SimulationContext, waiter: Process) -> None:
        donated = waiter.effective_priority
        boosted: set[int] = {waiter.pid}
        resource = ctx.resource(waiter.waiting_on) if waiter.waiting_on is not None else None
        while resource is not None and resource.owner is not None:
            owner = resource.owner
            # A cycle means the chain is deadlocked; every member is already boosted.
            if owner.pid in boosted or owner.effective_priority >= donated:
                return
            logger.debug(
                "tick %d: process %d inherits priority %d from %d via resource %d",
                ctx.ticks,
                owner.pid,
                donated,
                waiter.pid,
                resource.resource_id,
            )
            owner.effective_priority = donated
            boosted.add(owner.pid)
            if owner.status is not ProcessStatus.WAITING or owner.waiting_on is None:
                return
            resource = ctx.resource(owner.waiting_on)
            resource.wait_queue.remove(owner)
            self.enqueue_waiter(resource, owner)


SCHEDULERS: dict[str, SchedulerFactory] = {
    "fifo": FifoScheduler,
    "sjf": SjfScheduler,
    "srtf": SrtfScheduler,
    "rr": RoundRobinScheduler,
    "prio": PriorityScheduler,
    "pip": PipScheduler,
}


def create_scheduler(key: str, **options: int) -> Scheduler:
    """Build a registered policy, rejecting unfinished ones."""

    try:
        factory = SCHEDULERS[key.lower()]
    except KeyError:
        msg = f"unknown scheduling policy {key!r}; choose from {', '.join(SCHEDULERS)}"
        raise ValueError(msg) from None
    if inspect.isclass(factory) and inspect.isabstract(factory):
        missing = ", ".join(sorted(factory.__abstractmethods__))
        msg = f"policy {factory.__name__} does not implement: {missing}"
        raise PolicyNotImplemented(msg)
    scheduler = factory(**options)
    validate_scheduler(scheduler)
    return scheduler
