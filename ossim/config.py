from __future__ import annotations

import json
from dataclasses import asdict, dataclass, fields, replace
from pathlib import Path
from typing import Optional

from .allocator import resolve_policy
from .cpu import DEFAULT_REGISTER_COUNT
from .memory import DEFAULT_MEMORY_SIZE


@dataclass
class SimulatorConfig:
    memory_size: int = DEFAULT_MEMORY_SIZE
    policy: str = "first"
    register_count: int = DEFAULT_REGISTER_COUNT
    program_min_size: int = 1000
    program_max_size: int = 20000
    seed: Optional[int] = None

    def __post_init__(self) -> None:
        for name in ("memory_size", "register_count", "program_min_size", "program_max_size"):
            value = getattr(self, name)
            if not isinstance(value, int) or isinstance(value, bool):
                raise ValueError(f"{name} must be an integer, got {value!r}")
        if self.seed is not None and (not isinstance(self.seed, int) or isinstance(self.seed, bool)):
            raise ValueError(f"seed must be an integer, got {self.seed!r}")
        if self.memory_size <= 0:
            raise ValueError(f"memory_size must be positive, got {self.memory_size}")
        if self.register_count <= 0:
            raise ValueError(f"register_count must be positive, got {self.register_count}")
        if not 0 < self.program_min_size <= self.program_max_size:
            raise ValueError(
                f"Invalid program size bounds: {self.program_min_size}..{self.program_max_size}"
            )
        resolve_policy(self.policy)

    def with_overrides(self, **overrides) -> "SimulatorConfig":
        """
        Return a copy with every non-None override applied.
        """
        return replace(self, **{k: v for k, v in overrides.items() if v is not None})

    def to_dict(self) -> dict:
        return asdict(self)


def load_config(path: str | Path) -> SimulatorConfig:
    """
    Load a SimulatorConfig from a JSON object; missing keys keep their defaults.
    """
    path = Path(path)
    with path.open("r", encoding="utf-8") as f:
        raw = json.load(f)

    if not isinstance(raw, dict):
        raise ValueError("Config file must contain a JSON object")

    known = {f.name for f in fields(SimulatorConfig)}
    unknown = set(raw) - known
    if unknown:
        raise ValueError(f"Unknown config keys: {', '.join(sorted(unknown))}")

    return SimulatorConfig(**raw)
