"""
Timelock & Execution

Implements:
  - ready_to_execute_at: pure time-gate computation (queued_at + delay)
  - ActionExecutor: pluggable capability that dispatches a proposal's
    instructions at the QUEUED → EXECUTED transition
  - InstructionDispatcher: routes each instruction to a handler registered
    for its program id
  - ExecutionLog: record of executed proposals

There is no background timer. The gate is enforced by comparing the
current time against the precomputed ready_to_execute_at whenever execute
is invoked; callers re-submit after the deadline.
"""

from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional, Protocol

from ..exceptions import GovernanceError, ValidationError
from ..logger import get_logger
from .arithmetic import checked_add_i64
from .proposals import Proposal, ProposalInstruction, ProposalState

logger = get_logger(__name__)


# ══════════════════════════════════════════════════════════════════════
#  TIMELOCK
# ══════════════════════════════════════════════════════════════════════

def ready_to_execute_at(queued_at: int, delay: int) -> int:
    """Earliest execution time; overflow raises GovernanceArithmeticError."""
    return checked_add_i64(queued_at, delay)


def seconds_remaining(proposal: Proposal, now: int) -> int:
    """Seconds until *proposal* may execute (0 if already past or not queued)."""
    if proposal.state != ProposalState.QUEUED:
        return 0
    return max(0, proposal.ready_to_execute_at - now)


def is_ready(proposal: Proposal, now: int) -> bool:
    return proposal.state == ProposalState.QUEUED and now >= proposal.ready_to_execute_at


# ══════════════════════════════════════════════════════════════════════
#  ACTION EXECUTORS
# ══════════════════════════════════════════════════════════════════════

class ActionExecutor(Protocol):
    """
    Dispatches a proposal's stored instructions.

    Called exactly once per proposal, inside the execute transaction. If it
    raises, the transaction rolls back and the proposal stays QUEUED.
    """

    def execute(self, proposal: Proposal) -> Any: ...


class NoopActionExecutor:
    """Records instructions without side effects."""

    def execute(self, proposal: Proposal) -> Any:
        return [instruction.to_dict() for instruction in proposal.instructions]


class UnknownProgramError(GovernanceError):
    """No handler registered for an instruction's program id."""


InstructionHandler = Callable[[ProposalInstruction, Proposal], Any]


class InstructionDispatcher:
    """
    Routes each instruction, in order, to the handler registered for its
    program id. Unregistered programs fail the whole execution unless a
    fallback handler is set.
    """

    def __init__(self, fallback: Optional[InstructionHandler] = None):
        self._handlers: Dict[str, InstructionHandler] = {}
        self._fallback = fallback

    def register(self, program_id: str, handler: InstructionHandler) -> None:
        if not program_id:
            raise ValidationError("program_id is required")
        self._handlers[program_id] = handler
        logger.info(f"Instruction handler registered for program {program_id}")

    def unregister(self, program_id: str) -> None:
        self._handlers.pop(program_id, None)

    @property
    def programs(self) -> List[str]:
        return list(self._handlers)

    def execute(self, proposal: Proposal) -> List[Any]:
        results = []
        for index, instruction in enumerate(proposal.instructions):
            handler = self._handlers.get(instruction.program_id, self._fallback)
            if handler is None:
                raise UnknownProgramError(
                    f"Proposal #{proposal.id} instruction {index}: "
                    f"no handler for program {instruction.program_id}"
                )
            results.append(handler(instruction, proposal))
        return results


# ══════════════════════════════════════════════════════════════════════
#  EXECUTION LOG
# ══════════════════════════════════════════════════════════════════════

@dataclass
class ExecutionRecord:
    proposal_id: int
    proposal: str
    executed_at: int
    instruction_count: int
    result: Any = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "proposalId": self.proposal_id,
            "proposal": self.proposal,
            "executedAt": self.executed_at,
            "instructionCount": self.instruction_count,
            "result": self.result,
        }


@dataclass
class ExecutionLog:
    """Append-only list of executions, in execution order."""
    _records: List[ExecutionRecord] = field(default_factory=list)

    def append(self, record: ExecutionRecord) -> None:
        self._records.append(record)

    @property
    def records(self) -> List[ExecutionRecord]:
        return list(self._records)

    def count(self) -> int:
        return len(self._records)

    def to_dict(self) -> Dict[str, Any]:
        return {"executions": [r.to_dict() for r in self._records]}
