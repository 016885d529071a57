from __future__ import annotations

from collections.abc import Callable, Sequence

import pytest

from tick_scheduler import (
    Process,
    ProcessSpec,
    ProcessStatus,
    ResourceRequest,
    Scheduler,
    Simulation,
    SimulationConfig,
    SimulationContext,
    SimulationResult,
)


@pytest.fixture
def make_spec() -> Callable[..., ProcessSpec]:
    def build(
        pid: int,
        lifespan: int,
        *,
        arrival: int = 0,
        priority: int = 0,
        requests: Sequence[tuple[int, int, int]] = (),
    ) -> ProcessSpec:
        return ProcessSpec(
            pid=pid,
            arrival=arrival,
            lifespan=lifespan,
            priority=priority,
            requests=tuple(ResourceRequest(resource_id=r, at=at, duration=d) for r, at, d in requests),
        )

    return build


@pytest.fixture
def make_context() -> Callable[..., SimulationContext]:
    def build(*specs: ProcessSpec, nr_resources: int = 4) -> SimulationContext:
        ctx = SimulationContext(nr_resources=nr_resources)
        for spec in specs:
            ctx.admit(Process.from_spec(spec))
        return ctx

    return build


@pytest.fixture
def dispatch() -> Callable[[SimulationContext, Process], Process]:
    """Put a process on the CPU the way the driver does."""

    def run(ctx: SimulationContext, process: Process) -> Process:
        if process in ctx.ready_queue:
            ctx.ready_queue.remove(process)
        process.status = ProcessStatus.RUNNING
        ctx.current = process
        return process

    return run


@pytest.fixture
def simulate() -> Callable[..., SimulationResult]:
    def run(scheduler: Scheduler, specs: Sequence[ProcessSpec], **config: object) -> SimulationResult:
        return Simulation(scheduler, specs, SimulationConfig(**config)).run()

    return run
