"""
Voter Registry

Holds the organization's governance configuration (pass threshold,
timelock delay, administrative authority, external references) and the
weighted voter roster.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from ..constants import (
    GOVERNANCE_MAX_VOTE_THRESHOLD,
    SEED_GOVERNOR,
)
from ..exceptions import (
    AuthorizationError,
    DuplicateVoterError,
    ValidationError,
)
from ..logger import get_logger
from .arithmetic import checked_add_u64, require_i64, require_u64
from .store import derive_address

logger = get_logger(__name__)


def governor_address(authority: str) -> str:
    return derive_address(SEED_GOVERNOR, authority)


def validate_parameters(vote_threshold: int, timelock_delay: int) -> None:
    """Threshold is an integer percent in [0, 100]; delay is a non-negative i64."""
    if isinstance(vote_threshold, bool) or not isinstance(vote_threshold, int):
        raise ValidationError(f"Vote threshold must be an integer (got {vote_threshold!r})")
    if not 0 <= vote_threshold <= GOVERNANCE_MAX_VOTE_THRESHOLD:
        raise ValidationError(
            f"Invalid vote threshold {vote_threshold}, must be between 0 and "
            f"{GOVERNANCE_MAX_VOTE_THRESHOLD}"
        )
    require_i64(timelock_delay, "Timelock delay")
    if timelock_delay < 0:
        raise ValidationError(
            f"Invalid timelock delay {timelock_delay}, must be non-negative"
        )


@dataclass
class VoterInfo:
    """A roster entry."""
    pubkey: str
    weight: int

    def to_dict(self) -> Dict[str, Any]:
        return {"pubkey": self.pubkey, "weight": self.weight}


@dataclass
class Governor:
    """
    Registry for one organization instance.

    Fields:
        authority:        Administrative identity (activates, queues, manages roster)
        electorate:       External electorate reference (opaque)
        vote_threshold:   Pass threshold, integer percent in [0, 100]
        timelock_delay:   Seconds between queueing and execution
        governance_mint:  External governance-token reference (opaque)
        proposal_count:   Next proposal id; only ever incremented
    """
    authority: str
    electorate: str
    vote_threshold: int
    timelock_delay: int
    governance_mint: Optional[str] = None
    proposal_count: int = 0
    _roster: Dict[str, VoterInfo] = field(default_factory=dict, repr=False)

    def __post_init__(self):
        if not self.authority:
            raise ValidationError("Governor authority is required")
        validate_parameters(self.vote_threshold, self.timelock_delay)

    # ── Properties ────────────────────────────────────────────────────

    @property
    def address(self) -> str:
        return governor_address(self.authority)

    @property
    def voters(self) -> List[VoterInfo]:
        return list(self._roster.values())

    @property
    def voter_count(self) -> int:
        return len(self._roster)

    # ── Authorization ─────────────────────────────────────────────────

    def require_authority(self, caller: str) -> None:
        if caller != self.authority:
            raise AuthorizationError(
                f"{caller} is not the governor authority"
            )

    def is_voter(self, identity: str) -> bool:
        return identity in self._roster

    def weight_of(self, identity: str) -> int:
        """Current roster weight. Unregistered identities are unauthorised."""
        info = self._roster.get(identity)
        if info is None:
            raise AuthorizationError(f"{identity} is not a registered voter")
        return info.weight

    def require_voter(self, identity: str) -> None:
        if identity not in self._roster:
            raise AuthorizationError(f"{identity} is not a registered voter")

    # ── Roster mutations ──────────────────────────────────────────────

    def add_voter(self, caller: str, identity: str, weight: int) -> VoterInfo:
        self.require_authority(caller)
        if not identity:
            raise ValidationError("Voter identity is required")
        require_u64(weight, "Voter weight")
        if identity in self._roster:
            raise DuplicateVoterError(f"Duplicate voter {identity}")
        info = VoterInfo(pubkey=identity, weight=weight)
        self._roster[identity] = info
        logger.info(f"Voter added: {identity} (weight={weight})")
        return info

    def update_voter_weight(self, caller: str, identity: str, weight: int) -> int:
        """Set a new weight; returns the previous one."""
        self.require_authority(caller)
        require_u64(weight, "Voter weight")
        old = self.weight_of(identity)
        self._roster[identity].weight = weight
        logger.info(f"Voter weight changed: {identity} {old} → {weight}")
        return old

    def remove_voter(self, caller: str, identity: str) -> VoterInfo:
        """Drop a voter. Open-vote checks are the caller's responsibility."""
        self.require_authority(caller)
        self.require_voter(identity)
        info = self._roster.pop(identity)
        logger.info(f"Voter removed: {identity}")
        return info

    # ── Configuration ─────────────────────────────────────────────────

    def update_parameters(
        self,
        caller: str,
        vote_threshold: Optional[int] = None,
        timelock_delay: Optional[int] = None,
    ) -> None:
        self.require_authority(caller)
        threshold = self.vote_threshold if vote_threshold is None else vote_threshold
        delay = self.timelock_delay if timelock_delay is None else timelock_delay
        validate_parameters(threshold, delay)
        self.vote_threshold = threshold
        self.timelock_delay = delay
        logger.info(
            f"Governor parameters: threshold={threshold}% timelock={delay}s"
        )

    def next_proposal_id(self) -> int:
        """Post-increment the proposal counter."""
        pid = self.proposal_count
        self.proposal_count = checked_add_u64(pid, 1)
        return pid

    # ── Serialization ─────────────────────────────────────────────────

    def to_dict(self) -> Dict[str, Any]:
        return {
            "address": self.address,
            "authority": self.authority,
            "electorate": self.electorate,
            "governanceMint": self.governance_mint,
            "voteThreshold": self.vote_threshold,
            "timelockDelay": self.timelock_delay,
            "proposalCount": self.proposal_count,
            "voters": [v.to_dict() for v in self._roster.values()],
        }

    def __repr__(self) -> str:
        return (
            f"<Governor authority={self.authority} threshold={self.vote_threshold}% "
            f"delay={self.timelock_delay}s voters={len(self._roster)}>"
        )
