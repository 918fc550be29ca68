"""
Governance Proposals

Defines lifecycle states, the transition table, and the Proposal record
that tracks an individual proposal from draft to execution.

    DRAFT ──activate──▶ ACTIVE ──finalise──▶ SUCCEEDED ──queue──▶ QUEUED ──execute──▶ EXECUTED
      │                           └────────▶ REJECTED
      └──cancel──▶ CANCELED
"""

from dataclasses import dataclass, field
from enum import IntEnum
from typing import Any, Dict, List, Optional

from ..constants import SEED_PROPOSAL
from ..exceptions import (
    AuthorizationError,
    StateError,
    TimingError,
    ValidationError,
)
from ..logger import get_logger
from .arithmetic import checked_add_i64, checked_add_u64, percent_floor, require_i64
from .store import derive_address

logger = get_logger(__name__)


def proposal_address(governor: str, proposal_id: int) -> str:
    return derive_address(SEED_PROPOSAL, governor, proposal_id)


# ══════════════════════════════════════════════════════════════════════
#  ENUMS
# ══════════════════════════════════════════════════════════════════════

class ProposalState(IntEnum):
    """Lifecycle stage."""
    DRAFT = 0           # Created, not yet open for voting
    ACTIVE = 1          # Voting window open
    SUCCEEDED = 2       # Window closed, threshold met
    QUEUED = 3          # Waiting out the timelock
    EXECUTED = 4        # Executed
    REJECTED = 5        # Window closed, threshold missed (or no votes)
    CANCELED = 6        # Withdrawn by the proposer while still a draft


_VALID_TRANSITIONS: Dict[ProposalState, set] = {
    ProposalState.DRAFT:     {ProposalState.ACTIVE, ProposalState.CANCELED},
    ProposalState.ACTIVE:    {ProposalState.SUCCEEDED, ProposalState.REJECTED},
    ProposalState.SUCCEEDED: {ProposalState.QUEUED},
    ProposalState.QUEUED:    {ProposalState.EXECUTED},
    # Terminal states — no further transitions
    ProposalState.REJECTED:  set(),
    ProposalState.EXECUTED:  set(),
    ProposalState.CANCELED:  set(),
}

TERMINAL_STATES = frozenset(
    state for state, allowed in _VALID_TRANSITIONS.items() if not allowed
)


# ══════════════════════════════════════════════════════════════════════
#  INSTRUCTIONS
# ══════════════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class ProposalAccount:
    """An account reference carried by an instruction."""
    pubkey: str
    is_signer: bool = False
    is_writable: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return {
            "pubkey": self.pubkey,
            "isSigner": self.is_signer,
            "isWritable": self.is_writable,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ProposalAccount":
        return cls(
            pubkey=data["pubkey"],
            is_signer=data.get("isSigner", False),
            is_writable=data.get("isWritable", False),
        )


@dataclass(frozen=True)
class ProposalInstruction:
    """
    Opaque action descriptor: a target program, the accounts it touches
    and a payload. The engine stores these; dispatching them is the
    action executor's job.
    """
    program_id: str
    accounts: tuple = ()
    data: bytes = b""

    def __post_init__(self):
        if not self.program_id:
            raise ValidationError("Instruction program_id is required")
        if not isinstance(self.data, (bytes, bytearray)):
            raise ValidationError("Instruction data must be bytes")
        # Normalise so instructions stay hashable and immutable
        object.__setattr__(self, "accounts", tuple(self.accounts))
        object.__setattr__(self, "data", bytes(self.data))

    def to_dict(self) -> Dict[str, Any]:
        return {
            "programId": self.program_id,
            "accounts": [a.to_dict() for a in self.accounts],
            "data": self.data.hex(),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ProposalInstruction":
        return cls(
            program_id=data["programId"],
            accounts=tuple(ProposalAccount.from_dict(a) for a in data.get("accounts", [])),
            data=bytes.fromhex(data.get("data", "")),
        )


# ══════════════════════════════════════════════════════════════════════
#  PROPOSAL
# ══════════════════════════════════════════════════════════════════════

@dataclass
class Proposal:
    """
    A governance proposal and its running tally.

    Fields:
        id:                   Registry counter value at creation (never reused)
        governor:             Address of the owning registry
        proposer:             Identity that created the proposal
        instructions:         Ordered, non-empty list of ProposalInstruction
        state:                Current lifecycle stage
        for_votes / against_votes / abstain_votes:
                              Per-side u64 tally counters
        activated_at:         Timestamp voting opened
        voting_period:        Length of the voting window in seconds
        timelock_delay:       Delay snapshotted from the registry at creation
        queued_at:            Timestamp the proposal entered the timelock
        ready_to_execute_at:  Earliest execution timestamp
    """
    id: int
    governor: str
    proposer: str
    instructions: List[ProposalInstruction]
    timelock_delay: int
    created_at: int = 0
    state: ProposalState = ProposalState.DRAFT
    for_votes: int = 0
    against_votes: int = 0
    abstain_votes: int = 0
    activated_at: int = 0
    voting_period: int = 0
    queued_at: int = 0
    ready_to_execute_at: int = 0
    executed_at: Optional[int] = None
    canceled_at: Optional[int] = None
    _history: List[Dict[str, Any]] = field(default_factory=list, repr=False)

    def __post_init__(self):
        if not self.proposer:
            raise ValidationError("Proposer identity is required")
        if not self.instructions:
            raise ValidationError(
                "Invalid instructions: instruction list cannot be empty"
            )
        self.instructions = list(self.instructions)
        if not self._history:
            self._record_transition(ProposalState.DRAFT, "created", self.created_at)

    # ── Properties ────────────────────────────────────────────────────

    @property
    def address(self) -> str:
        return proposal_address(self.governor, self.id)

    @property
    def is_terminal(self) -> bool:
        return self.state in TERMINAL_STATES

    @property
    def is_votable(self) -> bool:
        return self.state == ProposalState.ACTIVE

    @property
    def voting_ends_at(self) -> int:
        return checked_add_i64(self.activated_at, self.voting_period)

    @property
    def total_votes(self) -> int:
        """for + against + abstain, checked."""
        return checked_add_u64(
            checked_add_u64(self.for_votes, self.against_votes),
            self.abstain_votes,
        )

    @property
    def history(self) -> List[Dict[str, Any]]:
        return list(self._history)

    # ── State transitions ─────────────────────────────────────────────

    def _record_transition(self, new_state: ProposalState, reason: str, now: int):
        self._history.append({
            "from": self.state.name if self._history else "INIT",
            "to": new_state.name,
            "reason": reason,
            "timestamp": now,
        })

    def require_state(self, expected: ProposalState, action: str) -> None:
        if self.state != expected:
            raise StateError(
                f"Cannot {action} proposal #{self.id} in state {self.state.name} "
                f"(requires {expected.name})"
            )

    def transition_to(self, new_state: ProposalState, now: int, reason: str = ""):
        """
        Advance proposal to *new_state*.

        Raises StateError on invalid transitions.
        """
        allowed = _VALID_TRANSITIONS.get(self.state, set())
        if new_state not in allowed:
            raise StateError(
                f"Cannot transition from {self.state.name} → {new_state.name}. "
                f"Allowed: {[s.name for s in allowed]}"
            )
        old = self.state
        self._record_transition(new_state, reason, now)
        self.state = new_state
        logger.info(
            f"Proposal #{self.id}: {old.name} → {new_state.name} | {reason}"
        )

    def activate(self, voting_period: int, now: int):
        """DRAFT → ACTIVE (open the voting window)."""
        self.require_state(ProposalState.DRAFT, "activate")
        require_i64(voting_period, "Voting period")
        if voting_period <= 0:
            raise ValidationError(
                f"Invalid voting period {voting_period}, must be positive"
            )
        # The window end must be representable
        checked_add_i64(now, voting_period)
        self.activated_at = now
        self.voting_period = voting_period
        self.transition_to(ProposalState.ACTIVE, now, "Voting activated")

    def cancel(self, caller: str, now: int):
        """DRAFT → CANCELED, by the original proposer only."""
        self.require_state(ProposalState.DRAFT, "cancel")
        if caller != self.proposer:
            raise AuthorizationError(
                f"{caller} is not authorised to cancel proposal #{self.id}"
            )
        self.canceled_at = now
        self.transition_to(ProposalState.CANCELED, now, f"Canceled by {caller}")

    def finalise(self, vote_threshold: int, now: int) -> Optional[int]:
        """
        ACTIVE → SUCCEEDED / REJECTED once the voting window has elapsed.

        Returns the FOR percentage, or None when nobody voted.
        """
        self.require_state(ProposalState.ACTIVE, "finalise")
        end = self.voting_ends_at
        if now < end:
            raise TimingError(
                f"Voting period for proposal #{self.id} still active "
                f"({end - now}s remaining)"
            )

        total = self.total_votes
        if total == 0:
            self.transition_to(ProposalState.REJECTED, now, "No votes cast")
            return None

        percent = percent_floor(self.for_votes, total)
        if percent >= vote_threshold:
            self.transition_to(
                ProposalState.SUCCEEDED, now,
                f"Approval {percent}% ≥ threshold {vote_threshold}%",
            )
        else:
            self.transition_to(
                ProposalState.REJECTED, now,
                f"Approval {percent}% < threshold {vote_threshold}%",
            )
        return percent

    def queue(self, queued_at: int, ready_to_execute_at: int):
        """SUCCEEDED → QUEUED with a precomputed execution time."""
        self.require_state(ProposalState.SUCCEEDED, "queue")
        self.queued_at = queued_at
        self.ready_to_execute_at = ready_to_execute_at
        self.transition_to(
            ProposalState.QUEUED, queued_at, f"Queued, ready at {ready_to_execute_at}"
        )

    def mark_executed(self, now: int):
        """QUEUED → EXECUTED once the timelock has elapsed."""
        self.require_state(ProposalState.QUEUED, "execute")
        if now < self.ready_to_execute_at:
            raise TimingError(
                f"Timelock for proposal #{self.id} not expired "
                f"({self.ready_to_execute_at - now}s remaining)"
            )
        self.executed_at = now
        self.transition_to(ProposalState.EXECUTED, now, "Executed")

    # ── Serialization ─────────────────────────────────────────────────

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "address": self.address,
            "governor": self.governor,
            "proposer": self.proposer,
            "instructions": [i.to_dict() for i in self.instructions],
            "state": self.state.name,
            "forVotes": self.for_votes,
            "againstVotes": self.against_votes,
            "abstainVotes": self.abstain_votes,
            "createdAt": self.created_at,
            "activatedAt": self.activated_at,
            "votingPeriod": self.voting_period,
            "timelockDelay": self.timelock_delay,
            "queuedAt": self.queued_at,
            "readyToExecuteAt": self.ready_to_execute_at,
            "executedAt": self.executed_at,
            "canceledAt": self.canceled_at,
            "historyLength": len(self._history),
        }

    def __repr__(self) -> str:
        return (
            f"<Proposal #{self.id} proposer={self.proposer} "
            f"state={self.state.name} for={self.for_votes} "
            f"against={self.against_votes} abstain={self.abstain_votes}>"
        )
