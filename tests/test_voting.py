"""
Vote ledger & tally test suite

Coverage:
  - Tally view and threshold check
  - Vote record creation (one per voter per proposal)
  - Cast: counted exactly once, registry-sourced weight
  - Set: weight moves between side counters
  - Overflow on accumulation
"""

import os
import sys

import pytest

# ── Path setup ────────────────────────────────────────────────────────
ROOT = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
if ROOT not in sys.path:
    sys.path.insert(0, ROOT)

from iterdao.constants import U64_MAX
from iterdao.exceptions import (
    AuthorizationError,
    DuplicateVoteError,
    GovernanceArithmeticError,
    StateError,
    ValidationError,
)
from iterdao.governance.events import VoteCast, VoteCreated, VoteSet
from iterdao.governance.proposals import Proposal, ProposalInstruction
from iterdao.governance.registry import Governor
from iterdao.governance.store import MemoryStore
from iterdao.governance.voting import (
    Tally,
    VoteLedger,
    VoteSide,
    VoteState,
    add_to_tally,
    vote_address,
)


# ══════════════════════════════════════════════════════════════════════
#  HELPERS
# ══════════════════════════════════════════════════════════════════════

AUTHORITY = "auth" + "A0" * 16
ALICE = "alice" + "A1" * 16
BOB = "bob" + "B2" * 16
CAROL = "carol" + "C3" * 16
MALLORY = "mallory" + "EE" * 16
NOW = 1_000


def make_setup(weights=None, trust_caller_weight=False, activate=True):
    """Store + ledger + governor with voters + one proposal."""
    if weights is None:
        weights = {ALICE: 60, BOB: 30, CAROL: 10}
    store = MemoryStore()
    governor = Governor(
        authority=AUTHORITY, electorate="e", vote_threshold=50, timelock_delay=0,
    )
    for voter, weight in weights.items():
        governor.add_voter(AUTHORITY, voter, weight)
    store.create(governor.address, governor)

    proposal = Proposal(
        id=governor.next_proposal_id(),
        governor=governor.address,
        proposer=ALICE,
        instructions=[ProposalInstruction(program_id="prog")],
        timelock_delay=0,
    )
    if activate:
        proposal.activate(500, NOW)
    store.create(proposal.address, proposal)
    return store, VoteLedger(store, trust_caller_weight), governor, proposal


def create(store, ledger, governor, proposal, voter):
    with store.transaction() as tx:
        return ledger.create_vote(tx, governor, proposal, voter, NOW)


def cast(store, ledger, governor, proposal, voter, side, weight=None):
    with store.transaction() as tx:
        return ledger.cast_vote(tx, governor, proposal, voter, side, NOW, weight)


def set_side(store, ledger, governor, proposal, voter, side):
    with store.transaction() as tx:
        return ledger.set_vote(tx, governor, proposal, voter, side, NOW)


# ══════════════════════════════════════════════════════════════════════
#  TALLY
# ══════════════════════════════════════════════════════════════════════

class TestTally:

    def test_totals(self):
        tally = Tally(proposal_id=0, for_votes=60, against_votes=30, abstain_votes=10)
        assert tally.total_votes == 100
        assert tally.for_percent == 60
        assert tally.passes(60)
        assert not tally.passes(61)

    def test_empty(self):
        tally = Tally(proposal_id=0, for_votes=0, against_votes=0, abstain_votes=0)
        assert tally.for_percent is None
        assert not tally.passes(0)

    def test_add_to_tally_overflow(self):
        _, _, _, proposal = make_setup()
        proposal.for_votes = U64_MAX
        with pytest.raises(GovernanceArithmeticError):
            add_to_tally(proposal, VoteSide.FOR, 1)
        assert proposal.for_votes == U64_MAX

    def test_invalid_side(self):
        _, _, _, proposal = make_setup()
        with pytest.raises(ValidationError, match="Invalid vote side"):
            add_to_tally(proposal, "FOR", 1)

    @pytest.mark.parametrize("side", list(VoteSide))
    def test_every_side_has_a_counter(self, side):
        _, _, _, proposal = make_setup()
        assert add_to_tally(proposal, side, 3) == 3
        assert proposal.for_votes + proposal.against_votes + proposal.abstain_votes == 3


# ══════════════════════════════════════════════════════════════════════
#  CREATE
# ══════════════════════════════════════════════════════════════════════

class TestCreateVote:

    def test_pending_abstain_zero(self):
        store, ledger, governor, proposal = make_setup()
        vote = create(store, ledger, governor, proposal, ALICE)
        assert vote.state == VoteState.PENDING
        assert vote.side == VoteSide.ABSTAIN
        assert vote.weight == 0
        assert vote.address == vote_address(proposal.address, ALICE)
        assert proposal.total_votes == 0

    def test_emits_created_event(self):
        store, ledger, governor, proposal = make_setup()
        with store.transaction() as tx:
            ledger.create_vote(tx, governor, proposal, ALICE, NOW)
        assert len(tx.events) == 1
        assert isinstance(tx.events[0], VoteCreated)

    def test_duplicate(self):
        store, ledger, governor, proposal = make_setup()
        create(store, ledger, governor, proposal, ALICE)
        with pytest.raises(DuplicateVoteError, match="already has a vote record"):
            create(store, ledger, governor, proposal, ALICE)

    def test_unregistered_voter(self):
        store, ledger, governor, proposal = make_setup()
        with pytest.raises(AuthorizationError):
            create(store, ledger, governor, proposal, MALLORY)

    def test_draft_not_votable(self):
        store, ledger, governor, proposal = make_setup(activate=False)
        with pytest.raises(StateError, match="is not votable"):
            create(store, ledger, governor, proposal, ALICE)


# ══════════════════════════════════════════════════════════════════════
#  CAST
# ══════════════════════════════════════════════════════════════════════

class TestCastVote:

    def test_cast_uses_registry_weight(self):
        store, ledger, governor, proposal = make_setup()
        create(store, ledger, governor, proposal, ALICE)
        vote = cast(store, ledger, governor, proposal, ALICE, VoteSide.FOR)
        assert vote.state == VoteState.CAST
        assert vote.weight == 60
        assert proposal.for_votes == 60

    def test_sides_accumulate_independently(self):
        store, ledger, governor, proposal = make_setup()
        for voter, side in ((ALICE, VoteSide.FOR), (BOB, VoteSide.AGAINST), (CAROL, VoteSide.ABSTAIN)):
            create(store, ledger, governor, proposal, voter)
            cast(store, ledger, governor, proposal, voter, side)
        assert Tally.of(proposal).to_dict()["forPercent"] == 60
        assert (proposal.for_votes, proposal.against_votes, proposal.abstain_votes) == (60, 30, 10)

    def test_cast_twice_not_double_counted(self):
        store, ledger, governor, proposal = make_setup()
        create(store, ledger, governor, proposal, ALICE)
        cast(store, ledger, governor, proposal, ALICE, VoteSide.FOR)
        with pytest.raises(StateError, match="already cast"):
            cast(store, ledger, governor, proposal, ALICE, VoteSide.FOR)
        assert proposal.for_votes == 60

    def test_cast_without_record(self):
        store, ledger, governor, proposal = make_setup()
        with pytest.raises(StateError, match="has no vote record"):
            cast(store, ledger, governor, proposal, ALICE, VoteSide.FOR)

    def test_matching_supplied_weight(self):
        store, ledger, governor, proposal = make_setup()
        create(store, ledger, governor, proposal, ALICE)
        cast(store, ledger, governor, proposal, ALICE, VoteSide.FOR, weight=60)
        assert proposal.for_votes == 60

    def test_mismatched_supplied_weight(self):
        store, ledger, governor, proposal = make_setup()
        create(store, ledger, governor, proposal, ALICE)
        with pytest.raises(ValidationError, match="does not match registry weight"):
            cast(store, ledger, governor, proposal, ALICE, VoteSide.FOR, weight=1_000)
        assert proposal.for_votes == 0
        assert ledger.get_vote(proposal, ALICE).state == VoteState.PENDING

    def test_trusted_caller_weight(self):
        store, ledger, governor, proposal = make_setup(trust_caller_weight=True)
        create(store, ledger, governor, proposal, ALICE)
        vote = cast(store, ledger, governor, proposal, ALICE, VoteSide.AGAINST, weight=1_000)
        assert vote.weight == 1_000
        assert proposal.against_votes == 1_000

    def test_overflow_rolls_back(self):
        store, ledger, governor, proposal = make_setup({ALICE: U64_MAX, BOB: 1})
        for voter in (ALICE, BOB):
            create(store, ledger, governor, proposal, voter)
        cast(store, ledger, governor, proposal, ALICE, VoteSide.FOR)
        with pytest.raises(GovernanceArithmeticError):
            cast(store, ledger, governor, proposal, BOB, VoteSide.FOR)
        assert proposal.for_votes == U64_MAX
        assert ledger.get_vote(proposal, BOB).state == VoteState.PENDING

    def test_emits_cast_event_with_counters(self):
        store, ledger, governor, proposal = make_setup()
        create(store, ledger, governor, proposal, BOB)
        with store.transaction() as tx:
            ledger.cast_vote(tx, governor, proposal, BOB, VoteSide.AGAINST, NOW)
        event = tx.events[0]
        assert isinstance(event, VoteCast)
        assert event.weight == 30
        assert event.against_votes == 30


# ══════════════════════════════════════════════════════════════════════
#  SET
# ══════════════════════════════════════════════════════════════════════

class TestSetVote:

    def test_moves_weight(self):
        store, ledger, governor, proposal = make_setup()
        create(store, ledger, governor, proposal, ALICE)
        cast(store, ledger, governor, proposal, ALICE, VoteSide.FOR)
        set_side(store, ledger, governor, proposal, ALICE, VoteSide.AGAINST)
        assert proposal.for_votes == 0
        assert proposal.against_votes == 60

    def test_set_on_pending_counts_once(self):
        store, ledger, governor, proposal = make_setup()
        create(store, ledger, governor, proposal, BOB)
        vote = set_side(store, ledger, governor, proposal, BOB, VoteSide.FOR)
        assert vote.state == VoteState.CAST
        assert proposal.total_votes == 30

    def test_same_side_is_stable(self):
        store, ledger, governor, proposal = make_setup()
        create(store, ledger, governor, proposal, ALICE)
        cast(store, ledger, governor, proposal, ALICE, VoteSide.FOR)
        set_side(store, ledger, governor, proposal, ALICE, VoteSide.FOR)
        assert proposal.for_votes == 60

    def test_uses_current_registry_weight(self):
        store, ledger, governor, proposal = make_setup()
        create(store, ledger, governor, proposal, ALICE)
        cast(store, ledger, governor, proposal, ALICE, VoteSide.FOR)
        governor.update_voter_weight(AUTHORITY, ALICE, 80)
        set_side(store, ledger, governor, proposal, ALICE, VoteSide.FOR)
        assert proposal.for_votes == 80

    def test_overflow_restores_removed_weight(self):
        store, ledger, governor, proposal = make_setup({ALICE: U64_MAX, BOB: 1})
        for voter, side in ((ALICE, VoteSide.FOR), (BOB, VoteSide.AGAINST)):
            create(store, ledger, governor, proposal, voter)
            cast(store, ledger, governor, proposal, voter, side)

        with pytest.raises(GovernanceArithmeticError):
            set_side(store, ledger, governor, proposal, BOB, VoteSide.FOR)

        assert proposal.against_votes == 1
        assert proposal.for_votes == U64_MAX
        assert ledger.get_vote(proposal, BOB).side == VoteSide.AGAINST

    def test_emits_set_event(self):
        store, ledger, governor, proposal = make_setup()
        create(store, ledger, governor, proposal, CAROL)
        with store.transaction() as tx:
            ledger.set_vote(tx, governor, proposal, CAROL, VoteSide.FOR, NOW)
        event = tx.events[0]
        assert isinstance(event, VoteSet)
        assert event.old_side == "ABSTAIN"
        assert event.side == "FOR"


class TestLedgerQueries:

    def test_votes_for_proposal(self):
        store, ledger, governor, proposal = make_setup()
        create(store, ledger, governor, proposal, ALICE)
        create(store, ledger, governor, proposal, BOB)
        assert {v.voter for v in ledger.votes_for_proposal(proposal)} == {ALICE, BOB}

    def test_pending_vote_on_active(self):
        store, ledger, governor, proposal = make_setup()
        create(store, ledger, governor, proposal, ALICE)
        assert ledger.has_pending_vote_on_active(ALICE)
        assert not ledger.has_pending_vote_on_active(BOB)
        cast(store, ledger, governor, proposal, ALICE, VoteSide.FOR)
        assert not ledger.has_pending_vote_on_active(ALICE)
