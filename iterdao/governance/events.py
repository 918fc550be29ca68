"""
Governance events.

One structured event is emitted per state transition and per tally
mutation. Events are a one-way notification channel for off-engine
observers and indexers: the engine publishes them after the operation
commits and never reads them back.
"""

from collections import deque
from dataclasses import dataclass
from typing import Any, Callable, Deque, Dict, List, Optional, Tuple, Type

from ..constants import EVENT_HISTORY_SIZE
from ..logger import get_logger

logger = get_logger(__name__)


# ══════════════════════════════════════════════════════════════════════
#  REGISTRY EVENTS
# ══════════════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class GovernorCreated:
    """Emitted once when the registry is initialised."""
    governor: str
    authority: str
    electorate: str
    governance_mint: Optional[str]
    vote_threshold: int
    timelock_delay: int
    timestamp: int

    def to_dict(self) -> Dict[str, Any]:
        return {
            "event": "GovernorCreated",
            "governor": self.governor,
            "authority": self.authority,
            "electorate": self.electorate,
            "governanceMint": self.governance_mint,
            "voteThreshold": self.vote_threshold,
            "timelockDelay": self.timelock_delay,
            "timestamp": self.timestamp,
        }


@dataclass(frozen=True)
class VoterAdded:
    governor: str
    voter: str
    weight: int
    timestamp: int

    def to_dict(self) -> Dict[str, Any]:
        return {
            "event": "VoterAdded",
            "governor": self.governor,
            "voter": self.voter,
            "weight": self.weight,
            "timestamp": self.timestamp,
        }


@dataclass(frozen=True)
class VoterWeightUpdated:
    governor: str
    voter: str
    old_weight: int
    new_weight: int
    timestamp: int

    def to_dict(self) -> Dict[str, Any]:
        return {
            "event": "VoterWeightUpdated",
            "governor": self.governor,
            "voter": self.voter,
            "oldWeight": self.old_weight,
            "newWeight": self.new_weight,
            "timestamp": self.timestamp,
        }


@dataclass(frozen=True)
class VoterRemoved:
    governor: str
    voter: str
    timestamp: int

    def to_dict(self) -> Dict[str, Any]:
        return {
            "event": "VoterRemoved",
            "governor": self.governor,
            "voter": self.voter,
            "timestamp": self.timestamp,
        }


@dataclass(frozen=True)
class GovernorParametersUpdated:
    governor: str
    vote_threshold: int
    timelock_delay: int
    timestamp: int

    def to_dict(self) -> Dict[str, Any]:
        return {
            "event": "GovernorParametersUpdated",
            "governor": self.governor,
            "voteThreshold": self.vote_threshold,
            "timelockDelay": self.timelock_delay,
            "timestamp": self.timestamp,
        }


# ══════════════════════════════════════════════════════════════════════
#  PROPOSAL EVENTS
# ══════════════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class ProposalCreated:
    proposal: str
    proposal_id: int
    proposer: str
    instruction_count: int
    timelock_delay: int
    timestamp: int

    def to_dict(self) -> Dict[str, Any]:
        return {
            "event": "ProposalCreated",
            "proposal": self.proposal,
            "proposalId": self.proposal_id,
            "proposer": self.proposer,
            "instructionCount": self.instruction_count,
            "timelockDelay": self.timelock_delay,
            "timestamp": self.timestamp,
        }


@dataclass(frozen=True)
class ProposalActivated:
    """Emitted when voting opens."""
    proposal: str
    proposal_id: int
    activated_at: int
    voting_period: int
    timelock_delay: int

    def to_dict(self) -> Dict[str, Any]:
        return {
            "event": "ProposalActivated",
            "proposal": self.proposal,
            "proposalId": self.proposal_id,
            "activatedAt": self.activated_at,
            "votingPeriod": self.voting_period,
            "timelockDelay": self.timelock_delay,
        }


@dataclass(frozen=True)
class ProposalCanceled:
    proposal: str
    proposal_id: int
    canceled_by: str
    canceled_at: int

    def to_dict(self) -> Dict[str, Any]:
        return {
            "event": "ProposalCanceled",
            "proposal": self.proposal,
            "proposalId": self.proposal_id,
            "canceledBy": self.canceled_by,
            "canceledAt": self.canceled_at,
        }


@dataclass(frozen=True)
class ProposalFinalised:
    """Emitted when the voting window closes with an outcome."""
    proposal: str
    proposal_id: int
    state: str
    for_votes: int
    against_votes: int
    abstain_votes: int
    for_percent: Optional[int]
    finalised_at: int

    def to_dict(self) -> Dict[str, Any]:
        return {
            "event": "ProposalFinalised",
            "proposal": self.proposal,
            "proposalId": self.proposal_id,
            "state": self.state,
            "forVotes": self.for_votes,
            "againstVotes": self.against_votes,
            "abstainVotes": self.abstain_votes,
            "forPercent": self.for_percent,
            "finalisedAt": self.finalised_at,
        }


@dataclass(frozen=True)
class ProposalQueued:
    proposal: str
    proposal_id: int
    queued_at: int
    ready_to_execute_at: int

    def to_dict(self) -> Dict[str, Any]:
        return {
            "event": "ProposalQueued",
            "proposal": self.proposal,
            "proposalId": self.proposal_id,
            "queuedAt": self.queued_at,
            "readyToExecuteAt": self.ready_to_execute_at,
        }


@dataclass(frozen=True)
class ProposalExecuted:
    proposal: str
    proposal_id: int
    executed_at: int
    instruction_count: int

    def to_dict(self) -> Dict[str, Any]:
        return {
            "event": "ProposalExecuted",
            "proposal": self.proposal,
            "proposalId": self.proposal_id,
            "executedAt": self.executed_at,
            "instructionCount": self.instruction_count,
        }


# ══════════════════════════════════════════════════════════════════════
#  VOTE EVENTS
# ══════════════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class VoteCreated:
    vote: str
    proposal: str
    voter: str
    state: str
    timestamp: int

    def to_dict(self) -> Dict[str, Any]:
        return {
            "event": "VoteCreated",
            "vote": self.vote,
            "proposal": self.proposal,
            "voter": self.voter,
            "state": self.state,
            "timestamp": self.timestamp,
        }


@dataclass(frozen=True)
class VoteCast:
    """First cast of a pending vote. Carries the proposal's new tally."""
    vote: str
    proposal: str
    voter: str
    side: str
    weight: int
    for_votes: int
    against_votes: int
    abstain_votes: int
    timestamp: int

    def to_dict(self) -> Dict[str, Any]:
        return {
            "event": "VoteCast",
            "vote": self.vote,
            "proposal": self.proposal,
            "voter": self.voter,
            "side": self.side,
            "weight": self.weight,
            "forVotes": self.for_votes,
            "againstVotes": self.against_votes,
            "abstainVotes": self.abstain_votes,
            "timestamp": self.timestamp,
        }


@dataclass(frozen=True)
class VoteSet:
    """Recast of a vote onto a (possibly) new side."""
    vote: str
    proposal: str
    voter: str
    old_side: str
    side: str
    weight: int
    for_votes: int
    against_votes: int
    abstain_votes: int
    timestamp: int

    def to_dict(self) -> Dict[str, Any]:
        return {
            "event": "VoteSet",
            "vote": self.vote,
            "proposal": self.proposal,
            "voter": self.voter,
            "oldSide": self.old_side,
            "side": self.side,
            "weight": self.weight,
            "forVotes": self.for_votes,
            "againstVotes": self.against_votes,
            "abstainVotes": self.abstain_votes,
            "timestamp": self.timestamp,
        }


# ══════════════════════════════════════════════════════════════════════
#  EVENT BUS
# ══════════════════════════════════════════════════════════════════════

Subscriber = Callable[[Any], None]


class EventBus:
    """
    Fan-out of committed events to subscribers.

    Subscribers run in registration order. A subscriber that raises is
    logged and skipped; delivery failures never reach the engine.

    The most recent *history_size* events are kept for inspection;
    0 keeps none.
    """

    def __init__(self, history_size: int = EVENT_HISTORY_SIZE) -> None:
        self._subscribers: List[Tuple[Subscriber, Optional[Tuple[Type, ...]]]] = []
        self._history: Deque[Any] = deque(maxlen=max(0, history_size))

    def subscribe(
        self,
        callback: Subscriber,
        event_types: Optional[Tuple[Type, ...]] = None,
    ) -> None:
        """Register *callback*, optionally only for *event_types*."""
        self._subscribers.append((callback, event_types))
        logger.debug("Event subscriber registered: %r", callback)

    def unsubscribe(self, callback: Subscriber) -> None:
        self._subscribers = [
            (cb, types) for cb, types in self._subscribers if cb is not callback
        ]

    @property
    def subscriber_count(self) -> int:
        return len(self._subscribers)

    @property
    def history(self) -> List[Any]:
        return list(self._history)

    def publish(self, event: Any) -> None:
        self._history.append(event)
        for callback, types in self._subscribers:
            if types is not None and not isinstance(event, types):
                continue
            try:
                callback(event)
            except Exception as e:
                logger.error(
                    "Event subscriber %r failed on %s: %s",
                    callback, type(event).__name__, e,
                )

    def publish_all(self, events: List[Any]) -> None:
        for event in events:
            self.publish(event)

    def __repr__(self) -> str:
        return (
            f"<EventBus subscribers={len(self._subscribers)} "
            f"retained={len(self._history)}>"
        )
