"""
Voter registry test suite

Coverage:
  - Parameter validation at creation and update
  - Authority checks on every roster mutation
  - Roster add / weight update / removal
  - Proposal counter
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
    DuplicateVoterError,
    StateError,
    ValidationError,
)
from iterdao.governance.registry import Governor, governor_address, validate_parameters


# ══════════════════════════════════════════════════════════════════════
#  HELPERS
# ══════════════════════════════════════════════════════════════════════

AUTHORITY = "auth" + "A0" * 16
ALICE = "alice" + "A1" * 16
BOB = "bob" + "B2" * 16
MALLORY = "mallory" + "EE" * 16
ELECTORATE = "electorate" + "C3" * 16


def make_governor(threshold=50, delay=3600, **kwargs):
    return Governor(
        authority=AUTHORITY,
        electorate=ELECTORATE,
        vote_threshold=threshold,
        timelock_delay=delay,
        **kwargs,
    )


# ══════════════════════════════════════════════════════════════════════
#  PARAMETERS
# ══════════════════════════════════════════════════════════════════════

class TestParameters:

    @pytest.mark.parametrize("threshold", [0, 1, 50, 100])
    def test_valid_thresholds(self, threshold):
        assert make_governor(threshold=threshold).vote_threshold == threshold

    @pytest.mark.parametrize("threshold", [-1, 101, 1000])
    def test_threshold_out_of_range(self, threshold):
        with pytest.raises(ValidationError, match="Invalid vote threshold"):
            make_governor(threshold=threshold)

    def test_negative_delay(self):
        with pytest.raises(ValidationError, match="Invalid timelock delay"):
            make_governor(delay=-1)

    def test_zero_delay_allowed(self):
        assert make_governor(delay=0).timelock_delay == 0

    def test_non_integer_threshold(self):
        with pytest.raises(ValidationError):
            validate_parameters(50.5, 0)

    def test_authority_required(self):
        with pytest.raises(ValidationError, match="authority is required"):
            Governor(authority="", electorate="", vote_threshold=50, timelock_delay=0)

    def test_address_derived_from_authority(self):
        gov = make_governor()
        assert gov.address == governor_address(AUTHORITY)
        assert gov.address != governor_address(ALICE)

    def test_update_parameters(self):
        gov = make_governor()
        gov.update_parameters(AUTHORITY, vote_threshold=66)
        assert gov.vote_threshold == 66
        assert gov.timelock_delay == 3600
        gov.update_parameters(AUTHORITY, timelock_delay=10)
        assert gov.timelock_delay == 10

    def test_update_parameters_validates(self):
        gov = make_governor()
        with pytest.raises(ValidationError):
            gov.update_parameters(AUTHORITY, vote_threshold=101)
        assert gov.vote_threshold == 50

    def test_update_parameters_requires_authority(self):
        gov = make_governor()
        with pytest.raises(AuthorizationError):
            gov.update_parameters(MALLORY, vote_threshold=1)


# ══════════════════════════════════════════════════════════════════════
#  ROSTER
# ══════════════════════════════════════════════════════════════════════

class TestRoster:

    def test_add_voter(self):
        gov = make_governor()
        gov.add_voter(AUTHORITY, ALICE, 10)
        assert gov.is_voter(ALICE)
        assert gov.weight_of(ALICE) == 10
        assert gov.voter_count == 1

    def test_zero_and_max_weight(self):
        gov = make_governor()
        gov.add_voter(AUTHORITY, ALICE, 0)
        gov.add_voter(AUTHORITY, BOB, U64_MAX)
        assert gov.weight_of(ALICE) == 0
        assert gov.weight_of(BOB) == U64_MAX

    def test_weight_outside_u64(self):
        gov = make_governor()
        with pytest.raises(ValidationError):
            gov.add_voter(AUTHORITY, ALICE, -1)
        with pytest.raises(ValidationError):
            gov.add_voter(AUTHORITY, ALICE, U64_MAX + 1)

    def test_only_authority_adds(self):
        gov = make_governor()
        with pytest.raises(AuthorizationError, match="not the governor authority"):
            gov.add_voter(MALLORY, MALLORY, 100)
        assert gov.voter_count == 0

    def test_duplicate_voter(self):
        gov = make_governor()
        gov.add_voter(AUTHORITY, ALICE, 10)
        with pytest.raises(DuplicateVoterError, match="Duplicate voter"):
            gov.add_voter(AUTHORITY, ALICE, 20)
        assert gov.weight_of(ALICE) == 10

    def test_duplicate_voter_is_state_error(self):
        gov = make_governor()
        gov.add_voter(AUTHORITY, ALICE, 10)
        with pytest.raises(StateError):
            gov.add_voter(AUTHORITY, ALICE, 10)

    def test_unknown_voter_weight(self):
        gov = make_governor()
        with pytest.raises(AuthorizationError, match="not a registered voter"):
            gov.weight_of(ALICE)

    def test_update_weight_returns_previous(self):
        gov = make_governor()
        gov.add_voter(AUTHORITY, ALICE, 10)
        assert gov.update_voter_weight(AUTHORITY, ALICE, 25) == 10
        assert gov.weight_of(ALICE) == 25

    def test_remove_voter(self):
        gov = make_governor()
        gov.add_voter(AUTHORITY, ALICE, 10)
        gov.remove_voter(AUTHORITY, ALICE)
        assert not gov.is_voter(ALICE)
        with pytest.raises(AuthorizationError):
            gov.remove_voter(AUTHORITY, ALICE)


class TestProposalCounter:

    def test_post_increment(self):
        gov = make_governor()
        assert gov.next_proposal_id() == 0
        assert gov.next_proposal_id() == 1
        assert gov.proposal_count == 2

    def test_to_dict(self):
        gov = make_governor(governance_mint="mint")
        gov.add_voter(AUTHORITY, ALICE, 3)
        d = gov.to_dict()
        assert d["voteThreshold"] == 50
        assert d["governanceMint"] == "mint"
        assert d["voters"] == [{"pubkey": ALICE, "weight": 3}]
