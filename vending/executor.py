"""
executor.py - Serial request queue

The machine relies on its host to run one operation at a time. SerialExecutor
is the minimal harness that provides that discipline:

1. Request: immutable (ticket, context, operation) triple
2. SerialExecutor: FIFO queue; run() executes requests strictly in
   submission order, each to completion before the next starts

The transition log on the machine is the audit trail; the executor keeps no
separate status tracking.
"""

from __future__ import annotations
from collections import deque
from dataclasses import dataclass
from typing import Deque, Iterable, List, Optional, Tuple

from .core import Context, Operation, Outcome
from .machine import VendingMachine


@dataclass(frozen=True, slots=True)
class Request:
    """One submitted operation. Tickets increase in submission order."""
    ticket: int
    ctx: Context
    operation: Operation


class SerialExecutor:
    """
    Strict one-at-a-time executor for a VendingMachine.

    Example:
        executor = SerialExecutor(machine)
        executor.submit(Context("alice"), Purchase("Americano"))
        executor.submit(Context("bob"), Purchase("Americano"))
        outcomes = executor.run()
    """

    def __init__(self, machine: VendingMachine):
        self.machine = machine
        self._queue: Deque[Request] = deque()
        self._next_ticket = 0

    def submit(self, ctx: Context, operation: Operation) -> int:
        """Queue an operation and return its ticket."""
        ticket = self._next_ticket
        self._next_ticket += 1
        self._queue.append(Request(ticket, ctx, operation))
        return ticket

    def submit_many(self, requests: Iterable[Tuple[Context, Operation]]) -> List[int]:
        return [self.submit(ctx, operation) for ctx, operation in requests]

    def pending(self) -> int:
        return len(self._queue)

    def run_one(self) -> Optional[Tuple[int, Outcome]]:
        """Execute the oldest queued request. Returns None when the queue is empty."""
        if not self._queue:
            return None
        request = self._queue.popleft()
        return request.ticket, self.machine.execute(request.ctx, request.operation)

    def run(self) -> List[Outcome]:
        """Drain the queue, returning outcomes in submission order."""
        outcomes = []
        while self._queue:
            _, outcome = self.run_one()
            outcomes.append(outcome)
        return outcomes

    def __repr__(self) -> str:
        return f"SerialExecutor({len(self._queue)} pending)"
