from __future__ import annotations

from typing import List

from rich import box
from rich.columns import Columns
from rich.console import Group
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from .kernel import OperatingSystem
from .models import SimulationStats, format_color
from .process_queue import ProcessQueue


def render_memory_map(kernel: OperatingSystem, width: int = 64) -> str:
    """
    Plain-text memory map: one character per bucket of cells.

    ``.`` marks a bucket whose first cell is free, ``#`` one that holds a program.
    """
    size = kernel.memory.size
    width = max(1, min(width, size))
    bucket = size / width
    chars = []
    for i in range(width):
        addr = int(i * bucket)
        chars.append("." if kernel.memory.read(addr) == 0 else "#")
    return "|" + "".join(chars) + "|"


def build_memory_panel(kernel: OperatingSystem, width: int = 64) -> Panel:
    size = kernel.memory.size
    width = max(1, min(width, size))
    bucket = size / width

    bar = Text()
    for i in range(width):
        word = kernel.memory.read(int(i * bucket))
        if word == 0:
            bar.append(".", style="dim")
        else:
            bar.append(" ", style=f"on {format_color(word)}")

    marks = Text(f"0{size:>{width - 1}}", style="dim") if width > len(str(size)) else Text("")
    return Panel.fit(Group(bar, marks), title=f"Memory ({size} words)")


def build_cpu_panel(kernel: OperatingSystem) -> Panel:
    cpu = kernel.cpu
    table = Table.grid(padding=(0, 1))
    table.add_column(style="bold")
    table.add_column()

    table.add_row("Cycle", str(cpu.cycle_count))
    if cpu.is_idle:
        table.add_row("PID", "0 (kernel idle process)")
    else:
        color = format_color(cpu.current_program.color)
        table.add_row("PID", Text(str(kernel.current_pid), style=f"bold {color}"))
        table.add_row("PC", str(cpu.program_counter))
        table.add_row("Base/Limit", f"{cpu.base_register}..{cpu.limit_register}")

    registers = Text()
    for value in cpu.registers:
        registers.append(f"{value:02x} ")
    table.add_row("Registers", registers)

    return Panel.fit(table, title="CPU")


def build_queue_table(queue: ProcessQueue) -> Table:
    table = Table(title=queue.title, box=box.SIMPLE_HEAVY)
    table.add_column("#", justify="right")
    table.add_column("PID", justify="center")
    table.add_column("Base", justify="right")
    table.add_column("Limit", justify="right")
    table.add_column("PC", justify="right")
    table.add_column("Color", justify="center")

    for idx, pcb in enumerate(queue):
        color = format_color(pcb.program.color)
        table.add_row(
            "head" if idx == 0 else str(idx),
            str(pcb.pid),
            str(pcb.base),
            str(pcb.limit),
            str(pcb.program_counter),
            Text(color, style=color),
        )
    return table


def build_free_table(kernel: OperatingSystem) -> Table:
    table = Table(title="Free intervals", box=box.SIMPLE_HEAVY)
    table.add_column("Start", justify="right")
    table.add_column("Length", justify="right")
    for start, length in kernel.allocator.free_intervals():
        table.add_row(str(start), str(length))
    return table


def build_stats_table(stats: SimulationStats) -> Table:
    table = Table(title="Simulation metrics", box=box.SIMPLE_HEAVY)
    table.add_column("Metric")
    table.add_column("Value", justify="right")

    table.add_row("Cycles", str(stats.cycles))
    table.add_row("CPU utilization", f"{stats.cpu_utilization*100:.1f}%")
    table.add_row("Dispatches", str(stats.dispatches))
    table.add_row("Context switches", str(stats.context_switches))
    table.add_row("Created / killed / rejected", f"{stats.created} / {stats.killed} / {stats.rejected}")
    table.add_row("Free words", str(stats.free_words))
    table.add_row("Largest free interval", str(stats.largest_free))
    table.add_row("Fragmentation", f"{stats.fragmentation*100:.1f}%")
    return table


def build_kernel_view(kernel: OperatingSystem) -> Group:
    """
    Everything a frame of the simulator shows, read-only.
    """
    parts: List = [
        Columns([build_cpu_panel(kernel), build_free_table(kernel)]),
        build_queue_table(kernel.ready_queue),
        build_queue_table(kernel.wait_queue),
        build_memory_panel(kernel),
    ]
    return Group(*parts)
