from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from typing import Sequence

from . import metrics
from .process import ProcessSpec
from .scheduler import Scheduler
from .simulator import Simulation, SimulationConfig, SimulationResult


PolicyFactory = Callable[[], Scheduler]


@dataclass(slots=True)
class EvaluationOutcome:
    name: str
    policy: str
    simulation: SimulationResult
    per_process: list[metrics.ProcessMetrics]
    aggregate: metrics.AggregateMetrics


def evaluate_scheduler(
    name: str,
    factory: PolicyFactory,
    specs: Sequence[ProcessSpec],
    *,
    config: SimulationConfig | None = None,
) -> EvaluationOutcome:
    scheduler = factory()
    simulation = Simulation(scheduler=scheduler, specs=specs, config=config)
    result = simulation.run()
    per_process = metrics.build_process_metrics(result.processes)
    aggregate = metrics.summarise(per_process, result)
    return EvaluationOutcome(
        name=name,
        policy=repr(scheduler),
        simulation=result,
        per_process=per_process,
        aggregate=aggregate,
    )


def evaluate_suite(
    factories: Sequence[tuple[str, PolicyFactory]],
    specs: Sequence[ProcessSpec],
    *,
    config: SimulationConfig | None = None,
) -> list[EvaluationOutcome]:
    return [evaluate_scheduler(name, factory, specs, config=config) for name, factory in factories]
