from __future__ import annotations

from collections import deque
from typing import Deque, Iterator, Optional

from .errors import EmptyQueueError
from .models import ProcessControlBlock, ProcessState


class ProcessQueue:
    """
    FIFO of PCBs whose members all hold ``managed_state``.
    """

    def __init__(self, managed_state: ProcessState, title: str = "") -> None:
        self.managed_state = managed_state
        self.title = title or f"{managed_state.name.title()} Queue"
        self._queue: Deque[ProcessControlBlock] = deque()

    def __iter__(self) -> Iterator[ProcessControlBlock]:
        return iter(list(self._queue))

    def __len__(self) -> int:
        return len(self._queue)

    def __contains__(self, pcb: object) -> bool:
        pid = getattr(pcb, "pid", None)
        return pid is not None and self.find(pid) is not None

    def is_empty(self) -> bool:
        return not self._queue

    def add(self, pcb: ProcessControlBlock) -> None:
        # Insertion coerces the state rather than asserting it.
        pcb.state = self.managed_state
        self._queue.append(pcb)

    def remove(self) -> ProcessControlBlock:
        if not self._queue:
            raise EmptyQueueError(f"remove() on empty {self.title}")
        return self._queue.popleft()

    def peek(self) -> Optional[ProcessControlBlock]:
        return self._queue[0] if self._queue else None

    def find(self, pid: int) -> Optional[ProcessControlBlock]:
        for pcb in self._queue:
            if pcb.pid == pid:
                return pcb
        return None

    def remove_identity(self, pcb: ProcessControlBlock) -> bool:
        """
        Remove the first member with ``pcb``'s pid. Returns whether one was removed.
        """
        match = self.find(pcb.pid)
        if match is None:
            return False
        self._queue.remove(match)
        return True
