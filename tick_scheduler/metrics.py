from __future__ import annotations

from dataclasses import dataclass
from statistics import mean
from typing import Iterable, Sequence

from .process import Process
from .simulator import SimulationResult


@dataclass(slots=True)
class ProcessMetrics:
    pid: int
    arrival: int
    first_run: int
    finish: int
    lifespan: int
    turnaround: int
    wait: int
    response: int


@dataclass(slots=True)
class AggregateMetrics:
    count: int
    mean_turnaround: float
    mean_wait: float
    mean_response: float
    p50_wait: float
    p90_wait: float
    max_wait: int
    throughput: float
    utilization: float
    context_switches: int


def build_process_metrics(processes: Iterable[Process]) -> list[ProcessMetrics]:
    metrics: list[ProcessMetrics] = []
    for process in processes:
        if process.finish is None or process.first_run is None:
            continue
        turnaround = process.finish - process.arrival
        metrics.append(
            ProcessMetrics(
                pid=process.pid,
                arrival=process.arrival,
                first_run=process.first_run,
                finish=process.finish,
                lifespan=process.lifespan,
                turnaround=turnaround,
                wait=turnaround - process.lifespan,
                response=process.first_run - process.arrival,
            ),
        )
    return metrics


def summarise(metrics: Sequence[ProcessMetrics], result: SimulationResult) -> AggregateMetrics:
    if not metrics:
        return AggregateMetrics(
            count=0,
            mean_turnaround=0.0,
            mean_wait=0.0,
            mean_response=0.0,
            p50_wait=0.0,
            p90_wait=0.0,
            max_wait=0,
            throughput=0.0,
            utilization=result.utilization,
            context_switches=result.context_switches,
        )
    waits = [m.wait for m in metrics]
    return AggregateMetrics(
        count=len(metrics),
        mean_turnaround=mean(m.turnaround for m in metrics),
        mean_wait=mean(waits),
        mean_response=mean(m.response for m in metrics),
        p50_wait=_percentile(waits, 50),
        p90_wait=_percentile(waits, 90),
        max_wait=max(waits),
        throughput=len(metrics) / result.total_ticks if result.total_ticks else 0.0,
        utilization=result.utilization,
        context_switches=result.context_switches,
    )


def _percentile(values: Sequence[float], percentile: float) -> float:
    if not values:
        return 0.0
    sorted_values = sorted(values)
    k = (len(sorted_values) - 1) * percentile / 100
    f = int(k)
    c = min(f + 1, len(sorted_values) - 1)
    if f == c:
        return sorted_values[f]
    d0 = sorted_values[f] * (c - k)
    d1 = sorted_values[c] * (k - f)
    return d0 + d1
