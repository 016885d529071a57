"""Tests for the tick-driven simulation driver."""

import pytest

from tick_scheduler import (
    DeadlockDetected,
    FifoScheduler,
    PolicyNotImplemented,
    ProcessStatus,
    QueueConsistencyViolation,
    RoundRobinScheduler,
    Scheduler,
    Simulation,
    SimulationConfig,
    SimulationLimitExceeded,
    create_scheduler,
    workload,
)
from tick_scheduler.schedulers import SCHEDULERS

POLICIES = sorted(SCHEDULERS)


def contended_workload():
    return workload.random_workload(
        25,
        seed=2024,
        max_arrival=30,
        lifespan_range=(2, 8),
        nr_resources=3,
        request_probability=0.8,
    )


def probed(key: str) -> Scheduler:
    """Wrap a registered policy with per-tick resource checks."""

    base = type(create_scheduler(key))

    class Probed(base):
        def schedule(self, ctx):
            for resource in ctx.resources:
                owner = resource.owner
                if owner is not None:
                    assert owner.status is not ProcessStatus.TERMINATED
                    assert resource.resource_id in owner.held
                    assert owner not in resource.wait_queue
            return super().schedule(ctx)

        def acquire(self, ctx, resource_id):
            owned_before = ctx.resource(resource_id).owner is not None
            granted = super().acquire(ctx, resource_id)
            assert not (owned_before and granted)
            return granted

    return Probed(quantum=2) if key == "rr" else Probed()


class TestSimulationInvariants:
    """Properties that hold for every policy."""

    @pytest.mark.parametrize("key", POLICIES)
    def test_each_process_runs_exactly_its_lifespan(self, key, simulate) -> None:
        """Running ticks add up to the lifespan and stop once it is reached."""
        specs = contended_workload()
        result = simulate(probed(key), specs)

        assert len(result.processes) == len(specs)
        for process in result.processes:
            assert result.timeline.count(process.pid) == process.lifespan
            assert process.age == process.lifespan
            assert process.status is ProcessStatus.TERMINATED
            last_tick = max(i for i, pid in enumerate(result.timeline) if pid == process.pid)
            assert last_tick == process.finish - 1
            assert not process.held

    @pytest.mark.parametrize("key", POLICIES)
    def test_runs_are_deterministic(self, key, simulate) -> None:
        """The same workload under the same policy yields the same schedule."""
        specs = contended_workload()
        first = simulate(create_scheduler(key), specs)
        second = simulate(create_scheduler(key), specs)
        assert first.timeline == second.timeline
        assert first.context_switches == second.context_switches

    @pytest.mark.parametrize("key", POLICIES)
    def test_resources_are_free_at_the_end(self, key) -> None:
        """Every resource is released and no one is left waiting."""
        simulation = Simulation(create_scheduler(key), contended_workload())
        simulation.run()
        for resource in simulation.ctx.resources:
            assert resource.owner is None
            assert not resource.wait_queue
        assert not simulation.ctx.ready_queue

    def test_independent_simulations_do_not_share_state(self, make_spec) -> None:
        """Two simulations of one policy object keep separate contexts."""
        policy = FifoScheduler()
        first = Simulation(policy, [make_spec(0, 2)])
        second = Simulation(policy, [make_spec(0, 3)])
        assert first.run().timeline == [0, 0]
        assert second.run().timeline == [0, 0, 0]
        assert first.ctx is not second.ctx


class TestResourceRequests:
    """The driver issues acquires and releases at the requested ages."""

    def test_blocked_process_yields_and_retries(self, make_spec, simulate) -> None:
        """A denied acquire hands the CPU over; the waiter retries once woken."""
        specs = [
            make_spec(0, 4, requests=[(0, 0, 4)]),
            make_spec(1, 3, requests=[(0, 1, 2)]),
        ]
        result = simulate(RoundRobinScheduler(quantum=1), specs)
        # 1 blocks at age 1 on tick 2, so 0 runs until it releases.
        assert result.timeline == [0, 1, 0, 0, 0, 1, 1]

    def test_deadlock_is_reported(self, make_spec, simulate) -> None:
        """Two processes waiting on each other abort the run."""
        specs = [
            make_spec(0, 4, requests=[(0, 0, 4), (1, 2, 2)]),
            make_spec(1, 4, requests=[(1, 0, 4), (0, 1, 3)]),
        ]
        with pytest.raises(DeadlockDetected, match="blocked"):
            simulate(RoundRobinScheduler(quantum=1), specs)

    def test_request_outside_resource_table_is_rejected(self, make_spec) -> None:
        """Workloads are checked against the configured table size."""
        with pytest.raises(ValueError, match="outside the table"):
            Simulation(FifoScheduler(), [make_spec(0, 3, requests=[(5, 0, 1)])], SimulationConfig(nr_resources=4))


class TestPolicyValidation:
    """Unfinished policies are rejected before the first tick."""

    def test_missing_callback_is_rejected(self, make_spec) -> None:
        """A policy whose schedule callback is unset cannot be simulated."""

        class Stub(Scheduler):
            name = "stub"
            schedule = None

        with pytest.raises(PolicyNotImplemented, match="schedule"):
            Simulation(Stub(), [make_spec(0, 1)])

    def test_abstract_policy_cannot_be_created(self, monkeypatch) -> None:
        """The registry refuses a policy with abstract callbacks."""

        class Unfinished(Scheduler):
            name = "unfinished"

        monkeypatch.setitem(SCHEDULERS, "unfinished", Unfinished)
        with pytest.raises(PolicyNotImplemented, match="schedule"):
            create_scheduler("unfinished")

    def test_unknown_policy_name(self) -> None:
        """Only registered names can be created."""
        with pytest.raises(ValueError, match="unknown scheduling policy"):
            create_scheduler("lottery")

    def test_failed_initialize_aborts(self, make_spec) -> None:
        """A non-zero initialize status stops the run."""

        class Broken(FifoScheduler):
            def initialize(self, ctx):
                return 1

        with pytest.raises(PolicyNotImplemented, match="status 1"):
            Simulation(Broken(), [make_spec(0, 1)]).run()

    def test_policy_leaving_process_in_queue_is_caught(self, make_spec) -> None:
        """Running a process that is still queued violates queue consistency."""

        class Leaky(FifoScheduler):
            def schedule(self, ctx):
                return ctx.ready_queue[0] if ctx.ready_queue else None

        with pytest.raises(QueueConsistencyViolation, match="ready queue"):
            Simulation(Leaky(), [make_spec(0, 2), make_spec(1, 2)]).run()


class TestQueueConsistency:
    """The context check rejects misplaced processes."""

    def test_waiting_process_outside_wait_queues(self, make_spec, make_context) -> None:
        """A WAITING process must be queued on some resource."""
        ctx = make_context(make_spec(0, 3))
        process = ctx.ready_queue.popleft()
        process.status = ProcessStatus.WAITING
        process.waiting_on = 1
        with pytest.raises(QueueConsistencyViolation, match="WAITING outside"):
            ctx.check_consistency()

    def test_process_in_two_wait_queues(self, make_spec, make_context) -> None:
        """A process may wait on one resource only."""
        ctx = make_context(make_spec(0, 3))
        process = ctx.ready_queue.popleft()
        process.status = ProcessStatus.WAITING
        process.waiting_on = 1
        ctx.resource(1).wait_queue.append(process)
        ctx.resource(2).wait_queue.append(process)
        with pytest.raises(QueueConsistencyViolation, match="queued on resource 2 but records 1"):
            ctx.check_consistency()

    def test_process_in_ready_queue_and_current_slot(self, make_spec, make_context) -> None:
        """Holding the CPU while still queued counts as two containers."""
        ctx = make_context(make_spec(0, 3))
        ctx.current = ctx.processes[0]
        with pytest.raises(QueueConsistencyViolation, match="found in 2 containers: ready queue, current slot"):
            ctx.check_consistency()

    def test_consistent_context_passes(self, make_spec, make_context, dispatch) -> None:
        """Ready, waiting and running processes each in their own place are accepted."""
        ctx = make_context(make_spec(0, 3), make_spec(1, 3), make_spec(2, 3))
        policy = FifoScheduler()
        dispatch(ctx, ctx.processes[0])
        policy.acquire(ctx, 0)
        dispatch(ctx, ctx.processes[1])
        policy.acquire(ctx, 0)
        dispatch(ctx, ctx.processes[0])
        ctx.check_consistency()


class TestDriver:
    """Driver bookkeeping, hooks and configuration."""

    def test_hooks_are_called(self, make_spec) -> None:
        """on_fork and on_exit fire once per process, finalize once per run."""
        events = []

        class Recording(FifoScheduler):
            def on_fork(self, ctx, process):
                events.append(("fork", process.pid, ctx.ticks))

            def on_exit(self, ctx, process):
                events.append(("exit", process.pid, ctx.ticks))

            def finalize(self, ctx):
                events.append(("finalize", None, ctx.ticks))

        Simulation(Recording(), [make_spec(0, 2), make_spec(1, 1, arrival=1)]).run()
        assert events == [
            ("fork", 0, 0),
            ("fork", 1, 1),
            ("exit", 0, 1),
            ("exit", 1, 2),
            ("finalize", None, 3),
        ]

    def test_context_switches_are_counted(self, make_spec, simulate) -> None:
        """Each dispatch of a different process counts one switch."""
        result = simulate(RoundRobinScheduler(quantum=1), [make_spec(0, 2), make_spec(1, 2)])
        assert result.timeline == [0, 1, 0, 1]
        assert result.context_switches == 4

    def test_tick_limit(self, make_spec, simulate) -> None:
        """Runs longer than max_ticks are aborted."""
        with pytest.raises(SimulationLimitExceeded):
            simulate(FifoScheduler(), [make_spec(0, 5)], max_ticks=3)

    def test_duplicate_pids_are_rejected(self, make_spec) -> None:
        """Every process needs its own pid."""
        with pytest.raises(ValueError, match="duplicate pid"):
            Simulation(FifoScheduler(), [make_spec(0, 1), make_spec(0, 2)])

    @pytest.mark.parametrize("options", [{"nr_resources": 0}, {"max_ticks": 0}])
    def test_config_validation(self, options) -> None:
        """Configuration values are validated eagerly."""
        with pytest.raises(ValueError):
            SimulationConfig(**options)

    def test_status_dump_is_logged(self, make_spec, caplog) -> None:
        """dump_status logs the context every tick."""
        config = SimulationConfig(dump_status=True)
        with caplog.at_level("DEBUG", logger="tick_scheduler"):
            Simulation(FifoScheduler(), [make_spec(0, 2, requests=[(3, 0, 2)])], config).run()
        dumps = [r.getMessage() for r in caplog.records if r.getMessage().startswith("status at tick")]
        assert len(dumps) == 2
        assert "owner 0 waiters []" in dumps[0]
