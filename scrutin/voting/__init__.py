"""Voting workflow.

- models.py: commands, events, rejections and state of an election
- workflow.py: the workflow itself (decide + evolve) and the tally
"""
from scrutin.voting.models import (
    TRANSITIONS,
    AlreadyRegistered,
    AlreadyVoted,
    EmptyDescription,
    Forbidden,
    InvalidPhase,
    Proposal,
    Unauthorized,
    UnknownProposal,
    Voter,
    VotingState,
    WorkflowStatus,
)
from scrutin.voting.workflow import TallyMismatch, VotingWorkflow, winning_proposal

__all__ = [
    "TRANSITIONS",
    "AlreadyRegistered",
    "AlreadyVoted",
    "EmptyDescription",
    "Forbidden",
    "InvalidPhase",
    "Proposal",
    "Unauthorized",
    "UnknownProposal",
    "Voter",
    "VotingState",
    "WorkflowStatus",
    "TallyMismatch",
    "VotingWorkflow",
    "winning_proposal",
]
