"""
Weighted Vote Ledger & Tally Engine

Implements:
  - One vote record per (proposal, voter), created Pending / Abstain / 0
  - Cast: a pending vote is counted exactly once
  - Set: retarget a vote, moving its weight between side counters
  - Vote sides: For / Against / Abstain (abstain counts toward the total)
  - Overflow-checked tally counters, accumulated independently per side
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, List, Optional

from ..constants import SEED_VOTE
from ..exceptions import (
    DuplicateVoteError,
    StateError,
    ValidationError,
)
from ..logger import get_logger
from .arithmetic import checked_add_u64, checked_sub_u64, percent_floor, require_u64
from .events import VoteCast, VoteCreated, VoteSet
from .proposals import Proposal, ProposalState
from .registry import Governor
from .store import MemoryStore, Transaction, derive_address

logger = get_logger(__name__)


def vote_address(proposal: str, voter: str) -> str:
    return derive_address(SEED_VOTE, proposal, voter)


# ══════════════════════════════════════════════════════════════════════
#  VOTE DATA
# ══════════════════════════════════════════════════════════════════════

class VoteSide(Enum):
    FOR = "FOR"
    AGAINST = "AGAINST"
    ABSTAIN = "ABSTAIN"


class VoteState(Enum):
    PENDING = "PENDING"
    CAST = "CAST"


# Every side maps to exactly one proposal counter
_COUNTER_FIELDS: Dict[VoteSide, str] = {
    VoteSide.FOR: "for_votes",
    VoteSide.AGAINST: "against_votes",
    VoteSide.ABSTAIN: "abstain_votes",
}


def _counter_field(side: VoteSide) -> str:
    if not isinstance(side, VoteSide):
        raise ValidationError(f"Invalid vote side: {side!r}")
    return _COUNTER_FIELDS[side]


def add_to_tally(proposal: Proposal, side: VoteSide, weight: int) -> int:
    """Add *weight* to the counter for *side*; returns the new counter value."""
    name = _counter_field(side)
    value = checked_add_u64(getattr(proposal, name), weight)
    setattr(proposal, name, value)
    return value


def remove_from_tally(proposal: Proposal, side: VoteSide, weight: int) -> int:
    """
    Subtract *weight* from the counter for *side*.

    Underflow means the counters and the vote records disagree.
    """
    name = _counter_field(side)
    value = checked_sub_u64(getattr(proposal, name), weight)
    setattr(proposal, name, value)
    return value


@dataclass
class Vote:
    """One voter's commitment toward one proposal."""
    proposal: str
    voter: str
    side: VoteSide = VoteSide.ABSTAIN
    weight: int = 0
    state: VoteState = VoteState.PENDING

    @property
    def address(self) -> str:
        return vote_address(self.proposal, self.voter)

    @property
    def is_cast(self) -> bool:
        return self.state == VoteState.CAST

    def to_dict(self) -> Dict[str, Any]:
        return {
            "address": self.address,
            "proposal": self.proposal,
            "voter": self.voter,
            "side": self.side.value,
            "weight": self.weight,
            "state": self.state.value,
        }


@dataclass(frozen=True)
class Tally:
    """Read-only view of a proposal's counters."""
    proposal_id: int
    for_votes: int
    against_votes: int
    abstain_votes: int

    @classmethod
    def of(cls, proposal: Proposal) -> "Tally":
        return cls(
            proposal_id=proposal.id,
            for_votes=proposal.for_votes,
            against_votes=proposal.against_votes,
            abstain_votes=proposal.abstain_votes,
        )

    @property
    def total_votes(self) -> int:
        """Total weight that participated (including abstain)."""
        return self.for_votes + self.against_votes + self.abstain_votes

    @property
    def for_percent(self) -> Optional[int]:
        if self.total_votes == 0:
            return None
        return percent_floor(self.for_votes, self.total_votes)

    def passes(self, vote_threshold: int) -> bool:
        percent = self.for_percent
        return percent is not None and percent >= vote_threshold

    def to_dict(self) -> Dict[str, Any]:
        return {
            "proposalId": self.proposal_id,
            "forVotes": self.for_votes,
            "againstVotes": self.against_votes,
            "abstainVotes": self.abstain_votes,
            "totalVotes": self.total_votes,
            "forPercent": self.for_percent,
        }


# ══════════════════════════════════════════════════════════════════════
#  VOTE LEDGER
# ══════════════════════════════════════════════════════════════════════

class VoteLedger:
    """
    Store-backed vote records and tally accumulation.

    Responsibilities:
        - Create at most one vote record per (proposal, voter)
        - Count a pending vote exactly once
        - Move weight between counters on recast
        - Emit one event per tally mutation into the open transaction

    Every mutating method must run inside a store transaction; the caller
    supplies it so a failure rolls back counters and records together.

    Weight policy: cast weight is the voter's registry weight. With
    *trust_caller_weight* the weight passed to cast_vote is used as-is,
    for hosts that compute (e.g. delegated) weights off-engine.
    """

    def __init__(self, store: MemoryStore, trust_caller_weight: bool = False):
        self._store = store
        self.trust_caller_weight = trust_caller_weight

    # ── Lookup ────────────────────────────────────────────────────────

    def get_vote(self, proposal: Proposal, voter: str) -> Optional[Vote]:
        return self._store.get(vote_address(proposal.address, voter))

    def require_vote(self, proposal: Proposal, voter: str) -> Vote:
        vote = self.get_vote(proposal, voter)
        if vote is None:
            raise StateError(
                f"{voter} has no vote record on proposal #{proposal.id}"
            )
        return vote

    def votes_for_proposal(self, proposal: Proposal) -> List[Vote]:
        address = proposal.address
        return [v for v in self._store.values(Vote) if v.proposal == address]

    def has_pending_vote_on_active(self, voter: str) -> bool:
        """Does *voter* hold an uncounted vote on a proposal still being voted on?"""
        for vote in self._store.values(Vote):
            if vote.voter != voter or vote.state != VoteState.PENDING:
                continue
            proposal = self._store.get(vote.proposal)
            if proposal is not None and proposal.state == ProposalState.ACTIVE:
                return True
        return False

    @staticmethod
    def _require_votable(proposal: Proposal) -> None:
        if not proposal.is_votable:
            raise StateError(
                f"Proposal #{proposal.id} is not votable "
                f"(state={proposal.state.name})"
            )

    # ── Create ────────────────────────────────────────────────────────

    def create_vote(
        self,
        tx: Transaction,
        governor: Governor,
        proposal: Proposal,
        voter: str,
        now: int,
    ) -> Vote:
        governor.require_voter(voter)
        self._require_votable(proposal)

        address = vote_address(proposal.address, voter)
        if self._store.exists(address):
            raise DuplicateVoteError(
                f"{voter} already has a vote record on proposal #{proposal.id}"
            )

        vote = self._store.create(address, Vote(proposal=proposal.address, voter=voter))
        tx.emit(VoteCreated(
            vote=address,
            proposal=proposal.address,
            voter=voter,
            state=vote.state.value,
            timestamp=now,
        ))
        logger.info(f"Vote record created: {voter} on proposal #{proposal.id}")
        return vote

    # ── Cast ──────────────────────────────────────────────────────────

    def _resolve_cast_weight(
        self, governor: Governor, voter: str, weight: Optional[int]
    ) -> int:
        registry_weight = governor.weight_of(voter)
        if weight is None:
            return registry_weight
        require_u64(weight, "Vote weight")
        if weight == registry_weight:
            return weight
        if self.trust_caller_weight:
            logger.warning(
                f"Caller-supplied weight {weight} for {voter} differs from "
                f"registry weight {registry_weight}; using caller weight"
            )
            return weight
        raise ValidationError(
            f"Vote weight {weight} does not match registry weight "
            f"{registry_weight} for {voter}"
        )

    def cast_vote(
        self,
        tx: Transaction,
        governor: Governor,
        proposal: Proposal,
        voter: str,
        side: VoteSide,
        now: int,
        weight: Optional[int] = None,
    ) -> Vote:
        """
        Count a pending vote.

        A vote already in CAST state is rejected; this is what prevents
        double counting. Use set_vote to change a counted vote.
        """
        governor.require_voter(voter)
        self._require_votable(proposal)
        vote = self.require_vote(proposal, voter)
        if vote.state != VoteState.PENDING:
            raise StateError(
                f"{voter} has already cast a vote on proposal #{proposal.id}"
            )
        _counter_field(side)

        power = self._resolve_cast_weight(governor, voter, weight)
        add_to_tally(proposal, side, power)

        vote.side = side
        vote.weight = power
        vote.state = VoteState.CAST

        tx.emit(VoteCast(
            vote=vote.address,
            proposal=proposal.address,
            voter=voter,
            side=side.value,
            weight=power,
            for_votes=proposal.for_votes,
            against_votes=proposal.against_votes,
            abstain_votes=proposal.abstain_votes,
            timestamp=now,
        ))
        logger.info(
            f"Vote: {voter} → {side.value} on proposal #{proposal.id} "
            f"(weight={power})"
        )
        return vote

    # ── Set (recast) ──────────────────────────────────────────────────

    def set_vote(
        self,
        tx: Transaction,
        governor: Governor,
        proposal: Proposal,
        voter: str,
        new_side: VoteSide,
        now: int,
    ) -> Vote:
        """
        Retarget a vote to *new_side* with the voter's current registry weight.

        The stored (side, weight) is removed from the tally first, so a
        pending vote (weight 0) is simply counted here.
        """
        governor.require_voter(voter)
        self._require_votable(proposal)
        vote = self.require_vote(proposal, voter)
        _counter_field(new_side)

        new_weight = governor.weight_of(voter)
        old_side = vote.side

        remove_from_tally(proposal, old_side, vote.weight)
        add_to_tally(proposal, new_side, new_weight)

        vote.side = new_side
        vote.weight = new_weight
        vote.state = VoteState.CAST

        tx.emit(VoteSet(
            vote=vote.address,
            proposal=proposal.address,
            voter=voter,
            old_side=old_side.value,
            side=new_side.value,
            weight=new_weight,
            for_votes=proposal.for_votes,
            against_votes=proposal.against_votes,
            abstain_votes=proposal.abstain_votes,
            timestamp=now,
        ))
        logger.info(
            f"Vote set: {voter} {old_side.value} → {new_side.value} on "
            f"proposal #{proposal.id} (weight={new_weight})"
        )
        return vote

    def __repr__(self) -> str:
        return (
            f"<VoteLedger votes={len(self._store.values(Vote))} "
            f"trust_caller_weight={self.trust_caller_weight}>"
        )
