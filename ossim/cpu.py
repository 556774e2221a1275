from __future__ import annotations

from typing import List, Optional

from .models import ProcessControlBlock, Program

DEFAULT_REGISTER_COUNT = 8


class CPU:
    """
    Simulated processor: a cycle counter plus a register file.

    Fetch-execute is a no-op advance of the program counter. The CPU never
    touches queues or memory.
    """

    def __init__(self, register_count: int = DEFAULT_REGISTER_COUNT) -> None:
        self.cycle_count = 0
        self.program_counter = 0
        self.registers: List[int] = [0] * register_count
        self.base_register = 0
        self.limit_register = 0
        self.is_idle = True
        self.current_program: Optional[Program] = None

    @property
    def register_count(self) -> int:
        return len(self.registers)

    def tick(self) -> int:
        """
        Run one cycle and return its 0-based index.
        """
        cycle = self.cycle_count
        self.cycle_count += 1
        if not self.is_idle:
            self.program_counter += 1
        return cycle

    def load_context(self, pcb: ProcessControlBlock) -> None:
        self.program_counter = pcb.program_counter
        regs = list(pcb.registers) or [0] * len(self.registers)
        if len(regs) != len(self.registers):
            raise ValueError(
                f"PCB {pcb.pid} has {len(regs)} registers, CPU has {len(self.registers)}"
            )
        self.registers = regs
        self.base_register = pcb.base
        self.limit_register = pcb.limit
        self.current_program = pcb.program
        self.is_idle = False

    def save_context_into(self, pcb: ProcessControlBlock) -> None:
        pcb.program_counter = self.program_counter
        pcb.registers = list(self.registers)
        pcb.base = self.base_register
        pcb.limit = self.limit_register
        if self.current_program is not None:
            pcb.program = self.current_program

    def go_idle(self) -> None:
        self.is_idle = True
        self.current_program = None
