from __future__ import annotations

import logging
from typing import Iterator, List, Optional, Union

from .allocator import Allocator, PolicyFunc
from .cpu import CPU
from .errors import InvariantViolation, OutOfMemoryError
from .memory import Memory
from .models import Dispatch, FitPolicy, ProcessControlBlock, ProcessState, Program
from .process_queue import ProcessQueue

logger = logging.getLogger(__name__)

ROUND_ROBIN_CYCLE_LIMIT = 30
INITIAL_USERSPACE_PID = 10
IDLE_PID = 0


class OperatingSystem:
    """
    Round-robin kernel over one CPU, one Memory and a contiguous allocator.

    The host drives it by calling :meth:`tick` once per frame and delivering
    input events (``exec``, ``block_current``, ``kill_current``,
    ``interrupt_and_unblock``) in between. Every call runs to completion.

    A PCB lives in exactly one place: on the CPU (``running``), in the ready
    queue or in the wait queue. The same PCB object travels between them, so
    identity is stable for the life of the process.
    """

    def __init__(
        self,
        cpu: CPU,
        memory: Memory,
        policy: Union[str, FitPolicy, PolicyFunc] = FitPolicy.FIRST_FIT,
    ) -> None:
        self.cpu = cpu
        self.memory = memory
        self.allocator = Allocator(memory, policy)
        self.ready_queue = ProcessQueue(ProcessState.READY, "Ready Queue")
        self.wait_queue = ProcessQueue(ProcessState.WAITING, "Wait Queue")

        self._current_pid = IDLE_PID
        self._running: Optional[ProcessControlBlock] = None
        self._next_pid = INITIAL_USERSPACE_PID

        self.trace: List[Dispatch] = []
        self.busy_cycles = 0
        self.idle_cycles = 0
        self.context_switches = 0
        self.created = 0
        self.killed = 0
        self.rejected = 0

    @classmethod
    def build(cls, config) -> "OperatingSystem":
        """
        Construct a kernel with a fresh CPU and Memory from a SimulatorConfig.
        """
        return cls(CPU(config.register_count), Memory(config.memory_size), config.policy)

    @property
    def current_pid(self) -> int:
        return self._current_pid

    @property
    def next_pid(self) -> int:
        return self._next_pid

    @property
    def running(self) -> Optional[ProcessControlBlock]:
        return self._running

    def processes(self) -> Iterator[ProcessControlBlock]:
        """
        Every live PCB: the running one first, then ready, then waiting.
        """
        if self._running is not None:
            yield self._running
        yield from self.ready_queue
        yield from self.wait_queue

    def find_waiting(self, pid: int) -> Optional[ProcessControlBlock]:
        return self.wait_queue.find(pid)

    # -- host operations -------------------------------------------------

    def tick(self) -> None:
        """
        Advance the CPU one cycle, then switch if the slice is over or the CPU is idle.
        """
        cycle = self.cpu.tick()
        if self.cpu.is_idle:
            self.idle_cycles += 1
        else:
            self.busy_cycles += 1

        if not self.ready_queue.is_empty() and (
            self.cpu.is_idle or cycle % ROUND_ROBIN_CYCLE_LIMIT == 0
        ):
            self._switch_context()

    def exec(self, program: Program) -> ProcessControlBlock:
        """
        Admit ``program`` as a new READY process at the tail of the ready queue.

        Raises OutOfMemoryError, without consuming a pid, if no free interval fits.
        """
        try:
            base = self.allocator.alloc(program.size)
        except OutOfMemoryError:
            self.rejected += 1
            logger.warning("exec rejected: no room for %d words", program.size)
            raise

        limit = base + program.size - 1
        self.memory.fill(base, limit, program.color)

        pcb = ProcessControlBlock(
            pid=self._next_pid,
            base=base,
            limit=limit,
            program=program,
            program_counter=base,
            registers=[0] * self.cpu.register_count,
        )
        self._next_pid += 1
        self.created += 1
        self.ready_queue.add(pcb)
        logger.info("exec pid %d at [%d, %d]", pcb.pid, base, limit)
        return pcb

    def block_current(self) -> Optional[ProcessControlBlock]:
        """
        Move the running process to the wait queue. No-op when idle.
        """
        if self.cpu.is_idle:
            return None
        pcb = self._take_running()
        self.wait_queue.add(pcb)
        logger.info("blocked pid %d", pcb.pid)
        self._dispatch_next()
        return pcb

    def kill_current(self) -> Optional[ProcessControlBlock]:
        """
        Terminate the running process and release its region. No-op when idle.
        """
        if self.cpu.is_idle:
            return None
        pcb = self._take_running()
        pcb.state = ProcessState.TERMINATED
        self.allocator.free(self.cpu.base_register, self.cpu.limit_register)
        self.killed += 1
        logger.info("killed pid %d, freed [%d, %d]", pcb.pid, pcb.base, pcb.limit)
        self._dispatch_next()
        return pcb

    def interrupt_and_unblock(self, pcb: ProcessControlBlock) -> bool:
        """
        Return the waiter with ``pcb``'s pid to the ready queue.

        A pid that is not waiting is a spurious interrupt: nothing changes and
        False is returned.
        """
        waiter = self.wait_queue.find(pcb.pid)
        if waiter is None:
            logger.debug("spurious interrupt for pid %d", pcb.pid)
            return False
        self.wait_queue.remove_identity(waiter)
        self.ready_queue.add(waiter)
        logger.info("unblocked pid %d", waiter.pid)
        return True

    # -- scheduling internals ----------------------------------------------

    def _take_running(self) -> ProcessControlBlock:
        pcb = self._running
        if pcb is None or pcb.pid != self._current_pid:
            raise InvariantViolation("CPU is busy but no running PCB is recorded")
        self.cpu.save_context_into(pcb)
        self._running = None
        return pcb

    def _dispatch_next(self) -> None:
        if self.ready_queue.is_empty():
            self.cpu.go_idle()
            self._current_pid = IDLE_PID
            logger.debug("cpu idle")
        else:
            self._dispatch(self.ready_queue.remove())

    def _switch_context(self) -> None:
        if self.ready_queue.is_empty():
            raise InvariantViolation("context switch with an empty ready queue")
        if not self.cpu.is_idle:
            outgoing = self._take_running()
            self.ready_queue.add(outgoing)
            self.context_switches += 1
            logger.debug("preempted pid %d at cycle %d", outgoing.pid, self.cpu.cycle_count)
        self._dispatch(self.ready_queue.remove())

    def _dispatch(self, pcb: ProcessControlBlock) -> None:
        self._current_pid = pcb.pid
        pcb.state = ProcessState.RUNNING
        self.cpu.load_context(pcb)
        self._running = pcb
        self.trace.append(Dispatch(cycle=self.cpu.cycle_count, pid=pcb.pid))
        logger.debug("dispatched pid %d", pcb.pid)

    # -- consistency ---------------------------------------------------------

    def check_invariants(self) -> None:
        """
        Raise InvariantViolation if the kernel's bookkeeping is inconsistent.
        """
        if self.cpu.is_idle:
            if self._current_pid != IDLE_PID or self._running is not None:
                raise InvariantViolation(f"CPU idle but current pid is {self._current_pid}")
        else:
            running = self._running
            if running is None or running.pid != self._current_pid:
                raise InvariantViolation("CPU busy without a matching running PCB")
            if running.state is not ProcessState.RUNNING:
                raise InvariantViolation(f"running pid {running.pid} is {running.state.name}")

        for queue in (self.ready_queue, self.wait_queue):
            for pcb in queue:
                if pcb.state is not queue.managed_state:
                    raise InvariantViolation(
                        f"pid {pcb.pid} in {queue.title} is {pcb.state.name}"
                    )

        live = list(self.processes())
        pids = [pcb.pid for pcb in live]
        if len(set(pids)) != len(pids):
            raise InvariantViolation(f"duplicate pids: {sorted(pids)}")
        if any(not INITIAL_USERSPACE_PID <= pid < self._next_pid for pid in pids):
            raise InvariantViolation(f"pid outside issued range: {sorted(pids)}")

        intervals = list(self.allocator.free_intervals())
        for (start, length), (next_start, _) in zip(intervals, intervals[1:]):
            if start + length >= next_start:
                raise InvariantViolation(f"free intervals at {start} and {next_start} overlap or touch")
        if any(length <= 0 for _, length in intervals):
            raise InvariantViolation("empty free interval")

        regions = sorted(
            [(start, length) for start, length in intervals]
            + [(pcb.base, pcb.size) for pcb in live]
        )
        position = 0
        for start, length in regions:
            if start != position:
                raise InvariantViolation(f"memory not partitioned at address {position}")
            position = start + length
        if position != self.memory.size:
            raise InvariantViolation(f"memory not partitioned: covered up to {position}")
