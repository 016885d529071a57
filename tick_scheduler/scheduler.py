from __future__ import annotations

import logging
from abc import ABC, abstractmethod

from .context import Resource, SimulationContext
from .errors import OwnershipViolation, PolicyNotImplemented, QueueConsistencyViolation
from .process import Process, ProcessStatus

logger = logging.getLogger(__name__)

CALLBACKS = ("initialize", "finalize", "schedule", "acquire", "release")


class Scheduler(ABC):
    """Abstract scheduling policy driven one tick at a time.

    ``acquire`` and ``release`` implement the default first-come,
    first-served resource protocol: the earliest waiter is woken first and
    ownership is never handed over on release.
    """

    name = "abstract"

    def initialize(self, ctx: SimulationContext) -> int:
        """Prepare the policy for a run. A non-zero status aborts the simulation."""
        return 0

    def finalize(self, ctx: SimulationContext) -> None:
        """Hook invoked once the last process has terminated."""

    @abstractmethod
    def schedule(self, ctx: SimulationContext) -> Process | None:
        """Select the process to run during the current tick."""

    def acquire(self, ctx: SimulationContext, resource_id: int) -> bool:
        resource = ctx.resource(resource_id)
        current = _require_current(ctx, "acquire")
        if resource.owner is None:
            resource.owner = current
            logger.debug("tick %d: process %d acquired resource %d", ctx.ticks, current.pid, resource_id)
            return True
        if resource.owner is current:
            msg = f"process {current.pid} already owns resource {resource_id}"
            raise QueueConsistencyViolation(msg)

        current.status = ProcessStatus.WAITING
        current.waiting_on = resource_id
        self.enqueue_waiter(resource, current)
        logger.debug(
            "tick %d: process %d blocked on resource %d held by %d",
            ctx.ticks,
            current.pid,
            resource_id,
            resource.owner.pid,
        )
        return False

    def release(self, ctx: SimulationContext, resource_id: int) -> None:
        resource = ctx.resource(resource_id)
        current = _require_current(ctx, "release")
        if resource.owner is not current:
            owner = resource.owner.pid if resource.owner is not None else None
            msg = f"process {current.pid} released resource {resource_id} owned by {owner}"
            raise OwnershipViolation(msg)
        resource.owner = None
        logger.debug("tick %d: process %d released resource %d", ctx.ticks, current.pid, resource_id)

        if not resource.wait_queue:
            return
        waiter = resource.wait_queue.popleft()
        if waiter.status is not ProcessStatus.WAITING:
            msg = f"process {waiter.pid} was queued on resource {resource_id} with status {waiter.status.name}"
            raise QueueConsistencyViolation(msg)
        waiter.status = ProcessStatus.READY
        waiter.waiting_on = None
        ctx.ready_queue.append(waiter)
        logger.debug("tick %d: process %d woken from resource %d", ctx.ticks, waiter.pid, resource_id)

    def enqueue_waiter(self, resource: Resource, process: Process) -> None:
        """Place a blocked process on the wait queue. FIFO by default."""
        resource.wait_queue.append(process)

    def on_fork(self, ctx: SimulationContext, process: Process) -> None:
        """Hook invoked when a process enters the ready queue for the first time."""

    def on_exit(self, ctx: SimulationContext, process: Process) -> None:
        """Hook invoked when a process has used up its lifespan."""

    def __repr__(self) -> str:
        return f"{type(self).__name__}(name={self.name!r})"


def validate_scheduler(scheduler: object) -> None:
    """Reject policies that leave any of the five callbacks unimplemented."""

    missing = sorted(getattr(type(scheduler), "__abstractmethods__", frozenset()))
    for callback in CALLBACKS:
        if not callable(getattr(scheduler, callback, None)) and callback not in missing:
            missing.append(callback)
    if missing:
        msg = f"policy {type(scheduler).__name__} does not implement: {', '.join(missing)}"
        raise PolicyNotImplemented(msg)


def _require_current(ctx: SimulationContext, operation: str) -> Process:
    if ctx.current is None:
        msg = f"{operation} called at tick {ctx.ticks} without a current process"
        raise QueueConsistencyViolation(msg)
    return ctx.current
