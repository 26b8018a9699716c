"""
Scrutin - phase-gated elections for Python

An election is a small event-sourced workflow: one administrator moves it
through six fixed phases, enrolled participants submit proposals and cast a
single vote each, and the tally picks the proposal with the most votes.
"""

__version__ = "0.1.0"

# Core workflow abstractions
from scrutin.model import (
    Adapter,
    AlreadyExists,
    EventBase,
    Rejection,
    StateBase,
    Workflow,
)

# Repository
from scrutin.repo import AsyncRepo, LoggingAdapter, StoredState, WorkflowNotFound

# Stream
from scrutin.stream import ConsumedEvent

# Configuration
from scrutin.config import ElectionConfig, load_scrutin_toml

# Voting workflow
from scrutin.voting import (
    TRANSITIONS,
    AlreadyRegistered,
    AlreadyVoted,
    EmptyDescription,
    Forbidden,
    InvalidPhase,
    Proposal,
    TallyMismatch,
    Unauthorized,
    UnknownProposal,
    Voter,
    VotingState,
    VotingWorkflow,
    WorkflowStatus,
)

# Engine
from scrutin.engine import CommandRejected, VotingEngine

# Validation
from scrutin.validation import (
    discover_and_validate,
    validate_transitions,
    validate_workflow,
)

__all__ = [
    # Version
    "__version__",
    # Core
    "Adapter",
    "AlreadyExists",
    "EventBase",
    "Rejection",
    "StateBase",
    "Workflow",
    # Repository
    "AsyncRepo",
    "LoggingAdapter",
    "StoredState",
    "WorkflowNotFound",
    # Stream
    "ConsumedEvent",
    # Config
    "ElectionConfig",
    "load_scrutin_toml",
    # Voting
    "TRANSITIONS",
    "AlreadyRegistered",
    "AlreadyVoted",
    "EmptyDescription",
    "Forbidden",
    "InvalidPhase",
    "Proposal",
    "TallyMismatch",
    "Unauthorized",
    "UnknownProposal",
    "Voter",
    "VotingState",
    "VotingWorkflow",
    "WorkflowStatus",
    # Engine
    "CommandRejected",
    "VotingEngine",
    # Validation
    "validate_workflow",
    "validate_transitions",
    "discover_and_validate",
]
