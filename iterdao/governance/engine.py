"""
Governance Engine

Single entry point for every governance operation. Each mutating call:

    1. reads the clock once
    2. opens one store transaction
    3. checks authorization and preconditions, then mutates records
    4. commits, then publishes the events it produced

A failure at any step rolls the transaction back and re-raises; nothing
is published and no partial mutation survives. The engine never retries.
"""

from contextlib import contextmanager
from typing import Any, Dict, Iterator, List, Optional, Sequence, Tuple

from ..constants import GOVERNANCE_DEFAULT_VOTING_PERIOD
from ..exceptions import GovernanceError, StateError, ValidationError
from ..logger import LogManager, get_logger
from .clock import Clock, SystemClock
from .events import (
    EventBus,
    GovernorCreated,
    GovernorParametersUpdated,
    ProposalActivated,
    ProposalCanceled,
    ProposalCreated,
    ProposalExecuted,
    ProposalFinalised,
    ProposalQueued,
    VoterAdded,
    VoterRemoved,
    VoterWeightUpdated,
)
from .execution import (
    ActionExecutor,
    ExecutionLog,
    ExecutionRecord,
    NoopActionExecutor,
    ready_to_execute_at,
)
from .proposals import (
    Proposal,
    ProposalInstruction,
    ProposalState,
    proposal_address,
)
from .registry import Governor
from .store import MemoryStore, Transaction
from .voting import Tally, Vote, VoteLedger, VoteSide

logger = get_logger(__name__)


class Governance:
    """
    Governance engine bound to one registry.

    Args:
        store:                Record store providing the transaction boundary
        clock:                Time source, read once per operation
        event_bus:            Receives committed events
        action_executor:      Dispatches instructions at execution
        trust_caller_weight:  Use the weight passed to cast_vote as-is
        default_voting_period: Used when activate_proposal gets no period
    """

    def __init__(
        self,
        store: Optional[MemoryStore] = None,
        clock: Optional[Clock] = None,
        event_bus: Optional[EventBus] = None,
        action_executor: Optional[ActionExecutor] = None,
        trust_caller_weight: bool = False,
        default_voting_period: int = GOVERNANCE_DEFAULT_VOTING_PERIOD,
    ):
        self.store = store if store is not None else MemoryStore()
        self.clock = clock or SystemClock()
        self.events = event_bus or EventBus()
        self.executor = action_executor or NoopActionExecutor()
        self.ledger = VoteLedger(self.store, trust_caller_weight=trust_caller_weight)
        self.execution_log = ExecutionLog()
        self.default_voting_period = default_voting_period
        self._governor_address: Optional[str] = None

    @classmethod
    def from_config(
        cls,
        config,
        authority: str,
        electorate: Optional[str] = None,
        governance_mint: Optional[str] = None,
        **kwargs,
    ) -> "Governance":
        """Build an engine and initialise its registry from a GovernanceConfig."""
        config.validate()
        LogManager().reconfigure(
            log_level=config.logging.level,
            file_output=config.logging.file_output,
        )
        engine = cls(
            trust_caller_weight=config.voting.trust_caller_weight,
            default_voting_period=config.voting.default_voting_period,
            **kwargs,
        )
        engine.initialize(
            vote_threshold=config.governor.vote_threshold,
            timelock_delay=config.governor.timelock_delay,
            electorate=electorate or config.governor.electorate,
            authority=authority,
            governance_mint=governance_mint or config.governor.governance_mint or None,
        )
        return engine

    # ── Plumbing ──────────────────────────────────────────────────────

    @contextmanager
    def _operation(self, name: str) -> Iterator[Tuple[Transaction, int]]:
        now = self.clock.now()
        try:
            with self.store.transaction() as tx:
                outermost = self.store.is_outermost
                yield tx, now
        except GovernanceError as e:
            logger.warning(f"{name} failed: {type(e).__name__}: {e}")
            raise
        # A nested operation (e.g. from an action executor) leaves
        # publication to the operation that owns the transaction
        if outermost:
            self.events.publish_all(tx.events)
            tx.committed()

    def _forget_governor(self) -> None:
        self._governor_address = None

    def _require_governor(self) -> Governor:
        if self._governor_address is None:
            raise StateError("Governor not initialised")
        return self.store.get(self._governor_address)

    def _require_proposal(self, governor: Governor, proposal_id: int) -> Proposal:
        proposal = self.store.get(proposal_address(governor.address, proposal_id))
        if proposal is None:
            raise ValidationError(f"Unknown proposal #{proposal_id}")
        return proposal

    # ══════════════════════════════════════════════════════════════════
    #  REGISTRY
    # ══════════════════════════════════════════════════════════════════

    def initialize(
        self,
        vote_threshold: int,
        timelock_delay: int,
        electorate: str,
        authority: str,
        governance_mint: Optional[str] = None,
    ) -> Governor:
        with self._operation("initialize") as (tx, now):
            if self._governor_address is not None:
                raise StateError("Governor already initialised")
            governor = Governor(
                authority=authority,
                electorate=electorate,
                vote_threshold=vote_threshold,
                timelock_delay=timelock_delay,
                governance_mint=governance_mint,
            )
            self.store.create(governor.address, governor)
            self._governor_address = governor.address
            tx.on_rollback(self._forget_governor)
            tx.emit(GovernorCreated(
                governor=governor.address,
                authority=authority,
                electorate=electorate,
                governance_mint=governance_mint,
                vote_threshold=vote_threshold,
                timelock_delay=timelock_delay,
                timestamp=now,
            ))
        logger.info(
            f"Governor initialised: threshold={vote_threshold}% "
            f"timelock={timelock_delay}s authority={authority}"
        )
        return governor

    def add_voter(self, caller: str, voter: str, weight: int) -> None:
        with self._operation("add_voter") as (tx, now):
            governor = self._require_governor()
            governor.add_voter(caller, voter, weight)
            tx.emit(VoterAdded(
                governor=governor.address, voter=voter, weight=weight, timestamp=now,
            ))

    def update_voter_weight(self, caller: str, voter: str, weight: int) -> None:
        """Counted votes keep their stored weight until the voter recasts."""
        with self._operation("update_voter_weight") as (tx, now):
            governor = self._require_governor()
            old = governor.update_voter_weight(caller, voter, weight)
            tx.emit(VoterWeightUpdated(
                governor=governor.address,
                voter=voter,
                old_weight=old,
                new_weight=weight,
                timestamp=now,
            ))

    def remove_voter(self, caller: str, voter: str) -> None:
        """Refused while the voter holds an uncounted vote on an active proposal."""
        with self._operation("remove_voter") as (tx, now):
            governor = self._require_governor()
            governor.require_authority(caller)
            if self.ledger.has_pending_vote_on_active(voter):
                raise StateError(
                    f"{voter} has an uncounted vote on an active proposal"
                )
            governor.remove_voter(caller, voter)
            tx.emit(VoterRemoved(governor=governor.address, voter=voter, timestamp=now))

    def update_parameters(
        self,
        caller: str,
        vote_threshold: Optional[int] = None,
        timelock_delay: Optional[int] = None,
    ) -> None:
        """Existing proposals keep the timelock delay they were created with."""
        with self._operation("update_parameters") as (tx, now):
            governor = self._require_governor()
            governor.update_parameters(caller, vote_threshold, timelock_delay)
            tx.emit(GovernorParametersUpdated(
                governor=governor.address,
                vote_threshold=governor.vote_threshold,
                timelock_delay=governor.timelock_delay,
                timestamp=now,
            ))

    @property
    def governor(self) -> Governor:
        return self._require_governor()

    # ══════════════════════════════════════════════════════════════════
    #  PROPOSALS
    # ══════════════════════════════════════════════════════════════════

    def create_proposal(
        self,
        proposer: str,
        instructions: Sequence[ProposalInstruction],
    ) -> Proposal:
        with self._operation("create_proposal") as (tx, now):
            governor = self._require_governor()
            if not instructions:
                raise ValidationError(
                    "Invalid instructions: instruction list cannot be empty"
                )
            for instruction in instructions:
                if not isinstance(instruction, ProposalInstruction):
                    raise ValidationError(
                        f"Expected ProposalInstruction, got {type(instruction).__name__}"
                    )
            governor.require_voter(proposer)

            pid = governor.next_proposal_id()
            proposal = Proposal(
                id=pid,
                governor=governor.address,
                proposer=proposer,
                instructions=list(instructions),
                timelock_delay=governor.timelock_delay,
                created_at=now,
            )
            self.store.create(proposal.address, proposal)
            tx.emit(ProposalCreated(
                proposal=proposal.address,
                proposal_id=pid,
                proposer=proposer,
                instruction_count=len(proposal.instructions),
                timelock_delay=proposal.timelock_delay,
                timestamp=now,
            ))
        logger.info(
            f"Proposal #{pid} created by {proposer} "
            f"({len(proposal.instructions)} instructions)"
        )
        return proposal

    def activate_proposal(
        self,
        caller: str,
        proposal_id: int,
        voting_period: Optional[int] = None,
    ) -> Proposal:
        period = self.default_voting_period if voting_period is None else voting_period
        with self._operation("activate_proposal") as (tx, now):
            governor = self._require_governor()
            governor.require_authority(caller)
            proposal = self._require_proposal(governor, proposal_id)
            proposal.activate(period, now)
            tx.emit(ProposalActivated(
                proposal=proposal.address,
                proposal_id=proposal.id,
                activated_at=proposal.activated_at,
                voting_period=proposal.voting_period,
                timelock_delay=proposal.timelock_delay,
            ))
        return proposal

    def cancel_proposal(self, caller: str, proposal_id: int) -> Proposal:
        with self._operation("cancel_proposal") as (tx, now):
            governor = self._require_governor()
            proposal = self._require_proposal(governor, proposal_id)
            proposal.cancel(caller, now)
            tx.emit(ProposalCanceled(
                proposal=proposal.address,
                proposal_id=proposal.id,
                canceled_by=caller,
                canceled_at=now,
            ))
        return proposal

    def finalise_proposal(self, proposal_id: int) -> Proposal:
        with self._operation("finalise_proposal") as (tx, now):
            governor = self._require_governor()
            proposal = self._require_proposal(governor, proposal_id)
            percent = proposal.finalise(governor.vote_threshold, now)
            tx.emit(ProposalFinalised(
                proposal=proposal.address,
                proposal_id=proposal.id,
                state=proposal.state.name,
                for_votes=proposal.for_votes,
                against_votes=proposal.against_votes,
                abstain_votes=proposal.abstain_votes,
                for_percent=percent,
                finalised_at=now,
            ))
        return proposal

    def queue_proposal(self, caller: str, proposal_id: int) -> Proposal:
        with self._operation("queue_proposal") as (tx, now):
            governor = self._require_governor()
            governor.require_authority(caller)
            proposal = self._require_proposal(governor, proposal_id)
            proposal.require_state(ProposalState.SUCCEEDED, "queue")
            ready_at = ready_to_execute_at(now, proposal.timelock_delay)
            proposal.queue(now, ready_at)
            tx.emit(ProposalQueued(
                proposal=proposal.address,
                proposal_id=proposal.id,
                queued_at=now,
                ready_to_execute_at=ready_at,
            ))
        return proposal

    def execute_proposal(self, proposal_id: int) -> Any:
        """
        Open the execution gate and dispatch the proposal's instructions.

        The state flips to EXECUTED before the executor runs, so a re-entrant
        or repeated call fails with StateError. If the executor raises, the
        whole operation rolls back and the proposal stays QUEUED.
        """
        with self._operation("execute_proposal") as (tx, now):
            governor = self._require_governor()
            proposal = self._require_proposal(governor, proposal_id)
            proposal.mark_executed(now)
            result = self.executor.execute(proposal)
            tx.emit(ProposalExecuted(
                proposal=proposal.address,
                proposal_id=proposal.id,
                executed_at=now,
                instruction_count=len(proposal.instructions),
            ))
            tx.on_commit(lambda: self.execution_log.append(ExecutionRecord(
                proposal_id=proposal.id,
                proposal=proposal.address,
                executed_at=now,
                instruction_count=len(proposal.instructions),
                result=result,
            )))
        return result

    def get_proposal(self, proposal_id: int) -> Proposal:
        return self._require_proposal(self._require_governor(), proposal_id)

    def list_proposals(self, state: Optional[ProposalState] = None) -> List[Proposal]:
        governor = self._require_governor()
        proposals = [
            p for p in self.store.values(Proposal) if p.governor == governor.address
        ]
        if state is not None:
            proposals = [p for p in proposals if p.state == state]
        return sorted(proposals, key=lambda p: p.id)

    # ══════════════════════════════════════════════════════════════════
    #  VOTES
    # ══════════════════════════════════════════════════════════════════

    def create_vote(self, voter: str, proposal_id: int) -> Vote:
        with self._operation("create_vote") as (tx, now):
            governor = self._require_governor()
            proposal = self._require_proposal(governor, proposal_id)
            vote = self.ledger.create_vote(tx, governor, proposal, voter, now)
        return vote

    def cast_vote(
        self,
        voter: str,
        proposal_id: int,
        side: VoteSide,
        weight: Optional[int] = None,
    ) -> Vote:
        with self._operation("cast_vote") as (tx, now):
            governor = self._require_governor()
            proposal = self._require_proposal(governor, proposal_id)
            vote = self.ledger.cast_vote(tx, governor, proposal, voter, side, now, weight)
        return vote

    def set_vote(self, voter: str, proposal_id: int, side: VoteSide) -> Vote:
        with self._operation("set_vote") as (tx, now):
            governor = self._require_governor()
            proposal = self._require_proposal(governor, proposal_id)
            vote = self.ledger.set_vote(tx, governor, proposal, voter, side, now)
        return vote

    def get_vote(self, voter: str, proposal_id: int) -> Optional[Vote]:
        return self.ledger.get_vote(self.get_proposal(proposal_id), voter)

    def votes_for_proposal(self, proposal_id: int) -> List[Vote]:
        return self.ledger.votes_for_proposal(self.get_proposal(proposal_id))

    def tally(self, proposal_id: int) -> Tally:
        return Tally.of(self.get_proposal(proposal_id))

    # ── Queries ───────────────────────────────────────────────────────

    def to_dict(self) -> Dict[str, Any]:
        governor = self._require_governor()
        return {
            "governor": governor.to_dict(),
            "proposals": [p.to_dict() for p in self.list_proposals()],
            "executions": self.execution_log.count(),
        }

    def __repr__(self) -> str:
        if self._governor_address is None:
            return "<Governance uninitialised>"
        governor = self._require_governor()
        return (
            f"<Governance threshold={governor.vote_threshold}% "
            f"voters={governor.voter_count} proposals={governor.proposal_count}>"
        )
