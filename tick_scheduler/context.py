from __future__ import annotations

from collections import deque
from dataclasses import dataclass, field
from typing import Iterator, Optional

from .errors import QueueConsistencyViolation, UnknownResource
from .process import Process, ProcessStatus


@dataclass(eq=False, slots=True)
class Resource:
    """A mutually exclusive resource with its queue of blocked processes."""

    resource_id: int
    owner: Optional[Process] = None
    wait_queue: deque[Process] = field(default_factory=deque)


class SimulationContext:
    """State shared between the simulation driver and the active policy.

    Every policy callback receives the context explicitly, so independent
    simulations never share a ready queue or a resource table.
    """

    def __init__(self, nr_resources: int = 32) -> None:
        if nr_resources <= 0:
            msg = "nr_resources must be strictly positive"
            raise ValueError(msg)
        self.ready_queue: deque[Process] = deque()
        self.current: Process | None = None
        self.resources: list[Resource] = [Resource(resource_id=i) for i in range(nr_resources)]
        self.ticks = 0
        self.processes: dict[int, Process] = {}

    def resource(self, resource_id: int) -> Resource:
        if not 0 <= resource_id < len(self.resources):
            msg = f"resource {resource_id} is not in the table of {len(self.resources)} resources"
            raise UnknownResource(msg)
        return self.resources[resource_id]

    def admit(self, process: Process) -> None:
        if process.pid in self.processes:
            msg = f"process {process.pid} was admitted twice"
            raise QueueConsistencyViolation(msg)
        process.status = ProcessStatus.READY
        self.processes[process.pid] = process
        self.ready_queue.append(process)

    def live_processes(self) -> Iterator[Process]:
        return (p for p in self.processes.values() if p.status is not ProcessStatus.TERMINATED)

    def has_live_processes(self) -> bool:
        return any(True for _ in self.live_processes())

    def owned_by(self, process: Process) -> list[Resource]:
        return [r for r in self.resources if r.owner is process]

    def check_consistency(self) -> None:
        """Raise QueueConsistencyViolation unless every live process sits in exactly one container."""

        placements: dict[int, list[str]] = {}
        for process in self.ready_queue:
            placements.setdefault(process.pid, []).append("ready queue")
            if process.status is not ProcessStatus.READY:
                msg = f"process {process.pid} is in the ready queue with status {process.status.name}"
                raise QueueConsistencyViolation(msg)
        for resource in self.resources:
            for process in resource.wait_queue:
                placements.setdefault(process.pid, []).append(f"wait queue of resource {resource.resource_id}")
                if process.status is not ProcessStatus.WAITING:
                    msg = f"process {process.pid} waits on resource {resource.resource_id} with status {process.status.name}"
                    raise QueueConsistencyViolation(msg)
                if process.waiting_on != resource.resource_id:
                    msg = f"process {process.pid} is queued on resource {resource.resource_id} but records {process.waiting_on}"
                    raise QueueConsistencyViolation(msg)
        if self.current is not None and self.current.status is not ProcessStatus.TERMINATED:
            placements.setdefault(self.current.pid, []).append("current slot")

        for process in self.live_processes():
            where = placements.get(process.pid, [])
            if len(where) > 1:
                msg = f"process {process.pid} found in {len(where)} containers: {', '.join(where)}"
                raise QueueConsistencyViolation(msg)
            if not where:
                if process.status is ProcessStatus.WAITING:
                    msg = f"process {process.pid} is WAITING outside every wait queue"
                else:
                    msg = f"process {process.pid} ({process.status.name}) is in no container"
                raise QueueConsistencyViolation(msg)
            if process.status is ProcessStatus.RUNNING and process is not self.current:
                msg = f"process {process.pid} is RUNNING but does not hold the CPU"
                raise QueueConsistencyViolation(msg)

    def dump_status(self) -> str:
        lines = ["***** CURRENT *********", f"{self.ticks:3d}: {self._describe(self.current)}"]
        lines.append("***** READY QUEUE *****")
        lines.extend(f"  {self._describe(p)}" for p in self.ready_queue)
        lines.append("***** RESOURCES *******")
        for resource in self.resources:
            if resource.owner is None and not resource.wait_queue:
                continue
            owner = resource.owner.pid if resource.owner is not None else "-"
            waiters = " ".join(str(p.pid) for p in resource.wait_queue)
            lines.append(f"  {resource.resource_id:2d}: owner {owner} waiters [{waiters}]")
        return "\n".join(lines)

    @staticmethod
    def _describe(process: Process | None) -> str:
        if process is None:
            return "(idle)"
        return (
            f"pid {process.pid:3d} {process.status.name:<10} age {process.age}/{process.lifespan} "
            f"prio {process.priority}/{process.effective_priority}"
        )
