"""
IterDAO Governance Engine

Provides:
  - Governor / VoterInfo                          (registry.py)
  - ProposalState / ProposalInstruction / Proposal (proposals.py)
  - VoteSide / VoteState / Vote / Tally / VoteLedger (voting.py)
  - ActionExecutor / InstructionDispatcher / ExecutionLog (execution.py)
  - EventBus and the event records                (events.py)
  - MemoryStore / derive_address                  (store.py)
  - Governance, the operation facade              (engine.py)
"""

from .clock import Clock, ManualClock, SystemClock
from .engine import Governance
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
    VoteCast,
    VoteCreated,
    VoterAdded,
    VoterRemoved,
    VoterWeightUpdated,
    VoteSet,
)
from .execution import (
    ActionExecutor,
    ExecutionLog,
    ExecutionRecord,
    InstructionDispatcher,
    NoopActionExecutor,
    UnknownProgramError,
)
from .proposals import (
    Proposal,
    ProposalAccount,
    ProposalInstruction,
    ProposalState,
)
from .registry import Governor, VoterInfo
from .store import MemoryStore, derive_address
from .voting import Tally, Vote, VoteLedger, VoteSide, VoteState

__all__ = [
    # Engine
    "Governance",
    "Clock",
    "ManualClock",
    "SystemClock",
    "MemoryStore",
    "derive_address",
    # Registry
    "Governor",
    "VoterInfo",
    # Proposals
    "Proposal",
    "ProposalAccount",
    "ProposalInstruction",
    "ProposalState",
    # Voting
    "Tally",
    "Vote",
    "VoteLedger",
    "VoteSide",
    "VoteState",
    # Execution
    "ActionExecutor",
    "ExecutionLog",
    "ExecutionRecord",
    "InstructionDispatcher",
    "NoopActionExecutor",
    "UnknownProgramError",
    # Events
    "EventBus",
    "GovernorCreated",
    "GovernorParametersUpdated",
    "ProposalActivated",
    "ProposalCanceled",
    "ProposalCreated",
    "ProposalExecuted",
    "ProposalFinalised",
    "ProposalQueued",
    "VoteCast",
    "VoteCreated",
    "VoterAdded",
    "VoterRemoved",
    "VoterWeightUpdated",
    "VoteSet",
]
