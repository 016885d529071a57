"""Tick-driven simulator of CPU scheduling policies and resource contention."""

from .context import Resource, SimulationContext
from .errors import (
    DeadlockDetected,
    OwnershipViolation,
    PolicyNotImplemented,
    QueueConsistencyViolation,
    SchedulerError,
    SimulationLimitExceeded,
    UnknownResource,
)
from .process import Process, ProcessSpec, ProcessStatus, ResourceRequest
from .scheduler import Scheduler
from .schedulers import (
    FifoScheduler,
    PipScheduler,
    PriorityScheduler,
    RoundRobinScheduler,
    SjfScheduler,
    SrtfScheduler,
    create_scheduler,
)
from .simulator import RunSegment, Simulation, SimulationConfig, SimulationResult
from . import workload
from . import metrics
from . import evaluation

__all__ = [
    "DeadlockDetected",
    "FifoScheduler",
    "OwnershipViolation",
    "PipScheduler",
    "PolicyNotImplemented",
    "PriorityScheduler",
    "Process",
    "ProcessSpec",
    "ProcessStatus",
    "QueueConsistencyViolation",
    "Resource",
    "ResourceRequest",
    "RoundRobinScheduler",
    "RunSegment",
    "Scheduler",
    "SchedulerError",
    "Simulation",
    "SimulationConfig",
    "SimulationContext",
    "SimulationLimitExceeded",
    "SimulationResult",
    "SjfScheduler",
    "SrtfScheduler",
    "UnknownResource",
    "create_scheduler",
    "evaluation",
    "metrics",
    "workload",
]
