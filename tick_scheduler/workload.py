from __future__ import annotations

from pathlib import Path
from random import Random

from .process import ProcessSpec, ResourceRequest


class WorkloadFormatError(ValueError):
    def __init__(self, lineno: int, message: str) -> None:
        super().__init__(f"line {lineno}: {message}")
        self.lineno = lineno


def random_workload(
    count: int,
    *,
    seed: int | None = None,
    max_arrival: int = 20,
    lifespan_range: tuple[int, int] = (1, 10),
    priority_range: tuple[int, int] = (0, 10),
    nr_resources: int = 0,
    request_probability: float = 0.3,
) -> list[ProcessSpec]:
    """Generate processes with random arrivals, lifespans and resource requests."""

    if count < 0:
        msg = "count cannot be negative"
        raise ValueError(msg)
    if max_arrival < 0:
        msg = "max_arrival cannot be negative"
        raise ValueError(msg)
    low, high = lifespan_range
    if low <= 0 or high < low:
        msg = "lifespan_range must satisfy 0 < min <= max"
        raise ValueError(msg)
    if priority_range[1] < priority_range[0]:
        msg = "priority_range must satisfy min <= max"
        raise ValueError(msg)
    if not 0.0 <= request_probability <= 1.0:
        msg = "request_probability must be within [0, 1]"
        raise ValueError(msg)

    rng = Random(seed)
    specs: list[ProcessSpec] = []
    for pid in range(count):
        lifespan = rng.randint(low, high)
        requests: list[ResourceRequest] = []
        if nr_resources > 0 and rng.random() < request_probability:
            at = rng.randrange(lifespan)
            duration = rng.randint(1, lifespan - at)
            requests.append(ResourceRequest(resource_id=rng.randrange(nr_resources), at=at, duration=duration))
        specs.append(
            ProcessSpec(
                pid=pid,
                arrival=rng.randint(0, max_arrival),
                lifespan=lifespan,
                priority=rng.randint(*priority_range),
                requests=tuple(requests),
            ),
        )
    return specs


def parse_workload(text: str) -> list[ProcessSpec]:
    """Parse the textual workload format.

    ::

        # comment
        process <arrival> <lifespan> [<priority>]
        acquire <resource_id> <at> <duration>
        end

    Processes are numbered in the order they are declared.
    """

    specs: list[ProcessSpec] = []
    header: tuple[int, int, int] | None = None
    header_line = 0
    requests: list[ResourceRequest] = []

    for lineno, raw in enumerate(text.splitlines(), start=1):
        line = raw.split("#", 1)[0].strip()
        if not line:
            continue
        keyword, *fields = line.split()
        keyword = keyword.lower()
        if keyword == "process":
            if header is not None:
                raise WorkloadFormatError(lineno, "missing 'end' before the next process")
            if len(fields) not in (2, 3):
                raise WorkloadFormatError(lineno, "expected 'process <arrival> <lifespan> [<priority>]'")
            values = _integers(lineno, fields)
            header = (values[0], values[1], values[2] if len(values) == 3 else 0)
            header_line = lineno
            requests = []
        elif keyword == "acquire":
            if header is None:
                raise WorkloadFormatError(lineno, "'acquire' outside of a process block")
            if len(fields) != 3:
                raise WorkloadFormatError(lineno, "expected 'acquire <resource_id> <at> <duration>'")
            resource_id, at, duration = _integers(lineno, fields)
            try:
                requests.append(ResourceRequest(resource_id=resource_id, at=at, duration=duration))
            except ValueError as exc:
                raise WorkloadFormatError(lineno, str(exc)) from exc
        elif keyword == "end":
            if header is None:
                raise WorkloadFormatError(lineno, "'end' without a matching 'process'")
            arrival, lifespan, priority = header
            try:
                specs.append(
                    ProcessSpec(
                        pid=len(specs),
                        arrival=arrival,
                        lifespan=lifespan,
                        priority=priority,
                        requests=tuple(sorted(requests, key=lambda r: r.at)),
                    ),
                )
            except ValueError as exc:
                raise WorkloadFormatError(header_line, str(exc)) from exc
            header = None
        else:
            raise WorkloadFormatError(lineno, f"unknown keyword {keyword!r}")

    if header is not None:
        raise WorkloadFormatError(header_line, "process block is not terminated with 'end'")
    return specs


def load_workload(path: str | Path) -> list[ProcessSpec]:
    return parse_workload(Path(path).read_text(encoding="utf-8"))


def format_workload(specs: list[ProcessSpec]) -> str:
    lines: list[str] = []
    for spec in specs:
        lines.append(f"process {spec.arrival} {spec.lifespan} {spec.priority}")
        lines.extend(f"acquire {r.resource_id} {r.at} {r.duration}" for r in spec.requests)
        lines.append("end")
    return "\n".join(lines) + "\n"


def _integers(lineno: int, fields: list[str]) -> list[int]:
    try:
        return [int(field) for field in fields]
    except ValueError:
        raise WorkloadFormatError(lineno, f"expected integers, got {' '.join(fields)!r}") from None
