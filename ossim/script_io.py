from __future__ import annotations

import csv
import json
import logging
import random
from pathlib import Path
from typing import Callable, List, Optional

from .errors import OutOfMemoryError
from .kernel import OperatingSystem
from .models import Event, Program, parse_color

logger = logging.getLogger(__name__)

OPS = {"exec", "tick", "block", "kill", "unblock"}


def load_script(path: str | Path) -> List[Event]:
    """
    Load an event script from a JSON or CSV file into a list of Event objects.
    """
    path = Path(path)
    suffix = path.suffix.lower()

    if suffix == ".json":
        return _load_json(path)
    if suffix == ".csv":
        return _load_csv(path)

    raise ValueError(f"Unsupported script format: {suffix} (use .json or .csv)")


def _load_json(path: Path) -> List[Event]:
    with path.open("r", encoding="utf-8") as f:
        raw = json.load(f)

    if not isinstance(raw, list):
        raise ValueError("JSON script must be a list of event objects")

    return [_event_from_mapping(entry) for entry in raw]


def _load_csv(path: Path) -> List[Event]:
    events: List[Event] = []
    with path.open("r", encoding="utf-8", newline="") as f:
        reader = csv.DictReader(f)
        for row in reader:
            events.append(_event_from_mapping(row))
    return events


def _optional_int(mapping, key: str) -> Optional[int]:
    value = mapping.get(key)
    return int(value) if value not in (None, "") else None


def _event_from_mapping(mapping) -> Event:
    try:
        op = str(mapping["op"]).strip().lower()
        size = _optional_int(mapping, "size")
        count = _optional_int(mapping, "count")
        pid = _optional_int(mapping, "pid")
        color_val = mapping.get("color")
        color = parse_color(color_val) if color_val not in (None, "") else None
    except (KeyError, TypeError, ValueError, AttributeError) as exc:
        raise ValueError(f"Invalid event entry: {mapping!r}") from exc

    if op not in OPS:
        raise ValueError(f"Unknown op '{op}' in event entry: {mapping!r}")
    if op == "unblock" and pid is None:
        raise ValueError(f"unblock event needs a pid: {mapping!r}")
    if count is not None and count < 0:
        raise ValueError(f"Negative tick count in event entry: {mapping!r}")
    if size is not None and size <= 0:
        raise ValueError(f"Non-positive program size in event entry: {mapping!r}")

    return Event(op=op, count=1 if count is None else count, size=size, color=color, pid=pid)


def program_for(event: Event, rng: random.Random, min_size: int = 1000, max_size: int = 20000) -> Program:
    """
    Build the Program an exec event asks for, filling unspecified fields at random.
    """
    program = Program.random(rng, min_size, max_size)
    return Program(
        size=event.size if event.size is not None else program.size,
        color=event.color if event.color is not None else program.color,
    )


def apply_event(
    kernel: OperatingSystem,
    event: Event,
    rng: random.Random,
    min_size: int = 1000,
    max_size: int = 20000,
    on_tick: Optional[Callable[[OperatingSystem], None]] = None,
) -> bool:
    """
    Deliver one event to the kernel. Returns False if an exec was rejected.
    """
    if event.op == "exec":
        try:
            kernel.exec(program_for(event, rng, min_size, max_size))
        except OutOfMemoryError as exc:
            logger.warning("%s", exc)
            return False
    elif event.op == "tick":
        for _ in range(event.count):
            kernel.tick()
            if on_tick is not None:
                on_tick(kernel)
    elif event.op == "block":
        kernel.block_current()
    elif event.op == "kill":
        kernel.kill_current()
    elif event.op == "unblock":
        waiter = kernel.find_waiting(event.pid)
        if waiter is None:
            logger.info("pid %s is not waiting; interrupt ignored", event.pid)
        else:
            kernel.interrupt_and_unblock(waiter)
    return True


def run_script(
    kernel: OperatingSystem,
    events: List[Event],
    rng: Optional[random.Random] = None,
    min_size: int = 1000,
    max_size: int = 20000,
    on_tick: Optional[Callable[[OperatingSystem], None]] = None,
) -> int:
    """
    Deliver ``events`` in order; returns the number of rejected exec events.
    """
    rng = rng or random.Random()
    rejected = 0
    for event in events:
        if not apply_event(kernel, event, rng, min_size, max_size, on_tick=on_tick):
            rejected += 1
    return rejected
