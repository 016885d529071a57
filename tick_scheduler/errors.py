from __future__ import annotations


class SchedulerError(Exception):
    """Base class for every error raised by the simulator."""


class OwnershipViolation(SchedulerError):
    """A process released a resource it does not own."""


class QueueConsistencyViolation(SchedulerError):
    """A process sits in the wrong container, or in more than one."""


class PolicyNotImplemented(SchedulerError):
    """A scheduling policy is missing one of its callbacks."""


class UnknownResource(SchedulerError, IndexError):
    """A resource id outside the resource table was requested."""


class DeadlockDetected(SchedulerError):
    """Live processes remain but none of them can ever run again."""


class SimulationLimitExceeded(SchedulerError):
    """The simulation ran past its configured tick budget."""
