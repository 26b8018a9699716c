"""Models for the voting workflow.

Commands, events, rejections and state of a single election.
"""
from enum import IntEnum
from typing import Literal, Union

from pydantic import BaseModel, Field

from scrutin.model import EventBase, Rejection, StateBase


DEFAULT_GENESIS_DESCRIPTION = "GENESIS"


class WorkflowStatus(IntEnum):
    RegisteringVoters = 0
    ProposalsRegistrationStarted = 1
    ProposalsRegistrationEnded = 2
    VotingSessionStarted = 3
    VotingSessionEnded = 4
    VotesTallied = 5


# One forward edge per phase; VotesTallied is terminal.
TRANSITIONS: dict[WorkflowStatus, WorkflowStatus] = {
    WorkflowStatus.RegisteringVoters: WorkflowStatus.ProposalsRegistrationStarted,
    WorkflowStatus.ProposalsRegistrationStarted: WorkflowStatus.ProposalsRegistrationEnded,
    WorkflowStatus.ProposalsRegistrationEnded: WorkflowStatus.VotingSessionStarted,
    WorkflowStatus.VotingSessionStarted: WorkflowStatus.VotingSessionEnded,
    WorkflowStatus.VotingSessionEnded: WorkflowStatus.VotesTallied,
}


# ============================================================================
# Commands - every command carries the identity of its caller
# ============================================================================


class CmdCreateElection(BaseModel):
    administrator: str
    genesis_description: str = DEFAULT_GENESIS_DESCRIPTION
    restrict_enrollment_to_registration: bool = False


class CmdEnrollParticipant(BaseModel):
    caller: str
    participant: str


class CmdBeginProposalsRegistration(BaseModel):
    caller: str


class CmdEndProposalsRegistration(BaseModel):
    caller: str


class CmdBeginVotingSession(BaseModel):
    caller: str


class CmdEndVotingSession(BaseModel):
    caller: str


class CmdTallyVotes(BaseModel):
    caller: str


class CmdSubmitProposal(BaseModel):
    caller: str
    description: str


class CmdCastVote(BaseModel):
    caller: str
    proposal_id: int


# Reads produce no events; the query only validates the caller's input.
class QryGetProposal(BaseModel):
    caller: str
    proposal_id: int


PhaseCommand = Union[
    CmdBeginProposalsRegistration,
    CmdEndProposalsRegistration,
    CmdBeginVotingSession,
    CmdEndVotingSession,
    CmdTallyVotes,
]

VotingCommand = Union[
    CmdCreateElection,
    CmdEnrollParticipant,
    CmdBeginProposalsRegistration,
    CmdEndProposalsRegistration,
    CmdBeginVotingSession,
    CmdEndVotingSession,
    CmdTallyVotes,
    CmdSubmitProposal,
    CmdCastVote,
]


# ============================================================================
# Events - notifications emitted once the state change is committed
# ============================================================================


class EvElectionCreated(EventBase):
    type: Literal["election.created"] = "election.created"
    administrator: str
    genesis_description: str = DEFAULT_GENESIS_DESCRIPTION
    restrict_enrollment_to_registration: bool = False


class EvParticipantRegistered(EventBase):
    type: Literal["participant.registered"] = "participant.registered"
    participant: str


class EvWorkflowStatusChanged(EventBase):
    type: Literal["workflow_status.changed"] = "workflow_status.changed"
    previous: WorkflowStatus
    next: WorkflowStatus


class EvProposalRegistered(EventBase):
    type: Literal["proposal.registered"] = "proposal.registered"
    proposal_id: int
    description: str


class EvVoteCast(EventBase):
    type: Literal["vote.cast"] = "vote.cast"
    voter: str
    proposal_id: int


class EvVotesTallied(EventBase):
    type: Literal["votes.tallied"] = "votes.tallied"
    winning_proposal_id: int


VotingEvent = Union[
    EvElectionCreated,
    EvParticipantRegistered,
    EvWorkflowStatusChanged,
    EvProposalRegistered,
    EvVoteCast,
    EvVotesTallied,
]


# ============================================================================
# Rejections - a rejected command leaves the election untouched
# ============================================================================


class Unauthorized(Rejection):
    """Caller is not the administrator."""

    caller: str


class Forbidden(Rejection):
    """Caller is not a registered participant."""

    caller: str


class InvalidPhase(Rejection):
    operation: str
    current: WorkflowStatus
    required: WorkflowStatus | None = None


class AlreadyRegistered(Rejection):
    participant: str


class AlreadyVoted(Rejection):
    voter: str
    proposal_id: int


class UnknownProposal(Rejection):
    proposal_id: int


class EmptyDescription(Rejection):
    description: str = ""


# ============================================================================
# State
# ============================================================================


class Voter(BaseModel):
    is_registered: bool = False
    has_voted: bool = False
    voted_proposal_id: int = 0


class Proposal(BaseModel):
    description: str
    vote_count: int = 0


class VotingState(StateBase):
    administrator: str
    status: WorkflowStatus = WorkflowStatus.RegisteringVoters
    voters: dict[str, Voter] = Field(default_factory=dict)
    proposals: list[Proposal] = Field(default_factory=list)
    winning_proposal_id: int = 0
    genesis_description: str = DEFAULT_GENESIS_DESCRIPTION
    restrict_enrollment_to_registration: bool = False

    def is_registered(self, participant: str) -> bool:
        voter = self.voters.get(participant)
        return voter is not None and voter.is_registered
