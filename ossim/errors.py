from __future__ import annotations


class SimulatorError(Exception):
    """
    Base class for every error raised by the simulated kernel.
    """


class OutOfMemoryError(SimulatorError):
    """
    No free interval is large enough for the requested region.
    """


class OutOfRangeError(SimulatorError, IndexError):
    """
    Memory was addressed outside of ``[0, size)``.
    """


class InvariantViolation(SimulatorError, RuntimeError):
    """
    Kernel bookkeeping is inconsistent; the simulation cannot continue.
    """


class EmptyQueueError(InvariantViolation):
    pass
