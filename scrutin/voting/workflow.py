"""Workflow definition for an election.

``decide`` validates a command against the current state and returns either
the events to commit or a ``Rejection``; ``evolve`` folds committed events
into a new state. Reads (``read_proposal``, ``read_voter``) go through the
same authorization rules but never produce events.
"""
from scrutin.model import Rejection, Workflow

from .models import (
    TRANSITIONS,
    AlreadyRegistered,
    AlreadyVoted,
    CmdBeginProposalsRegistration,
    CmdBeginVotingSession,
    CmdCastVote,
    CmdCreateElection,
    CmdEndProposalsRegistration,
    CmdEndVotingSession,
    CmdEnrollParticipant,
    CmdSubmitProposal,
    CmdTallyVotes,
    EmptyDescription,
    EvElectionCreated,
    EvParticipantRegistered,
    EvProposalRegistered,
    EvVoteCast,
    EvVotesTallied,
    EvWorkflowStatusChanged,
    Forbidden,
    InvalidPhase,
    PhaseCommand,
    Proposal,
    Unauthorized,
    UnknownProposal,
    Voter,
    VotingCommand,
    VotingEvent,
    VotingState,
    WorkflowStatus,
)


class TallyMismatch(Exception):
    def __init__(self, counted: int, voters: int, *args: object) -> None:
        self.counted = counted
        self.voters = voters
        super().__init__(
            f"Proposals hold {counted} votes but {voters} participants have voted"
        )


# Phase command -> (operation name, phase it must be issued from)
PHASE_OPERATIONS: dict[type, tuple[str, WorkflowStatus]] = {
    CmdBeginProposalsRegistration: (
        "begin_proposals_registration",
        WorkflowStatus.RegisteringVoters,
    ),
    CmdEndProposalsRegistration: (
        "end_proposals_registration",
        WorkflowStatus.ProposalsRegistrationStarted,
    ),
    CmdBeginVotingSession: (
        "begin_voting_session",
        WorkflowStatus.ProposalsRegistrationEnded,
    ),
    CmdEndVotingSession: (
        "end_voting_session",
        WorkflowStatus.VotingSessionStarted,
    ),
    CmdTallyVotes: ("tally_votes", WorkflowStatus.VotingSessionEnded),
}


def winning_proposal(proposals: list[Proposal]) -> int:
    """Index of the proposal with the most votes; the earliest wins a tie."""
    winner = 0
    for proposal_id, proposal in enumerate(proposals):
        if proposal.vote_count > proposals[winner].vote_count:
            winner = proposal_id
    return winner


def _check_admin(state: VotingState, caller: str) -> Unauthorized | None:
    if caller != state.administrator:
        return Unauthorized(
            caller=caller, msg=f"{caller!r} is not the administrator"
        )
    return None


def _check_participant(state: VotingState, caller: str) -> Forbidden | None:
    if not state.is_registered(caller):
        return Forbidden(caller=caller, msg=f"{caller!r} is not a registered voter")
    return None


def _check_phase(
    state: VotingState, operation: str, required: WorkflowStatus
) -> InvalidPhase | None:
    if state.status != required:
        return InvalidPhase(
            operation=operation,
            current=state.status,
            required=required,
            msg=(
                f"{operation} requires {required.name}, "
                f"election is in {state.status.name}"
            ),
        )
    return None


class VotingWorkflow(Workflow[VotingEvent, VotingCommand, VotingState]):
    """Phase-gated election with one administrator."""

    @classmethod
    def name(cls) -> str:
        return "election"

    @staticmethod
    def decide(
        state: VotingState | None,
        cmd: VotingCommand,
    ) -> list[VotingEvent] | Rejection:
        if isinstance(cmd, CmdCreateElection):
            if state is not None:
                return Rejection(msg="Election already created")
            if not cmd.administrator:
                return Rejection(msg="An election needs an administrator")
            return [
                EvElectionCreated(
                    administrator=cmd.administrator,
                    genesis_description=cmd.genesis_description,
                    restrict_enrollment_to_registration=(
                        cmd.restrict_enrollment_to_registration
                    ),
                )
            ]

        if state is None:
            return Rejection(msg="Election has not been created")

        if isinstance(cmd, CmdEnrollParticipant):
            return VotingWorkflow._decide_enroll(state, cmd)
        if isinstance(cmd, tuple(PHASE_OPERATIONS)):
            return VotingWorkflow._decide_phase(state, cmd)
        if isinstance(cmd, CmdSubmitProposal):
            return VotingWorkflow._decide_submit(state, cmd)
        if isinstance(cmd, CmdCastVote):
            return VotingWorkflow._decide_vote(state, cmd)

        return Rejection(msg=f"Unknown command {type(cmd).__name__}")

    @staticmethod
    def _decide_enroll(
        state: VotingState, cmd: CmdEnrollParticipant
    ) -> list[VotingEvent] | Rejection:
        rejection = _check_admin(state, cmd.caller)
        if rejection is not None:
            return rejection
        if state.restrict_enrollment_to_registration:
            rejection = _check_phase(
                state, "enroll_participant", WorkflowStatus.RegisteringVoters
            )
            if rejection is not None:
                return rejection
        if state.is_registered(cmd.participant):
            return AlreadyRegistered(
                participant=cmd.participant,
                msg=f"{cmd.participant!r} is already registered",
            )
        return [EvParticipantRegistered(participant=cmd.participant)]

    @staticmethod
    def _decide_phase(
        state: VotingState, cmd: PhaseCommand
    ) -> list[VotingEvent] | Rejection:
        operation, required = PHASE_OPERATIONS[type(cmd)]
        rejection = _check_admin(state, cmd.caller)
        if rejection is None:
            rejection = _check_phase(state, operation, required)
        if rejection is not None:
            return rejection

        events: list[VotingEvent] = []
        if isinstance(cmd, CmdTallyVotes):
            counted = sum(p.vote_count for p in state.proposals)
            voted = sum(1 for v in state.voters.values() if v.has_voted)
            if counted != voted:
                raise TallyMismatch(counted, voted)
            events.append(
                EvVotesTallied(winning_proposal_id=winning_proposal(state.proposals))
            )
        events.append(
            EvWorkflowStatusChanged(previous=state.status, next=TRANSITIONS[state.status])
        )
        return events

    @staticmethod
    def _decide_submit(
        state: VotingState, cmd: CmdSubmitProposal
    ) -> list[VotingEvent] | Rejection:
        rejection = _check_participant(state, cmd.caller)
        if rejection is None:
            rejection = _check_phase(
                state, "submit_proposal", WorkflowStatus.ProposalsRegistrationStarted
            )
        if rejection is not None:
            return rejection
        if not cmd.description.strip():
            return EmptyDescription(
                description=cmd.description, msg="Proposal description is empty"
            )
        return [
            EvProposalRegistered(
                proposal_id=len(state.proposals), description=cmd.description
            )
        ]

    @staticmethod
    def _decide_vote(
        state: VotingState, cmd: CmdCastVote
    ) -> list[VotingEvent] | Rejection:
        rejection = _check_participant(state, cmd.caller)
        if rejection is None:
            rejection = _check_phase(
                state, "cast_vote", WorkflowStatus.VotingSessionStarted
            )
        if rejection is not None:
            return rejection
        voter = state.voters[cmd.caller]
        if voter.has_voted:
            return AlreadyVoted(
                voter=cmd.caller,
                proposal_id=voter.voted_proposal_id,
                msg=(
                    f"{cmd.caller!r} already voted for proposal "
                    f"{voter.voted_proposal_id}"
                ),
            )
        if not 0 <= cmd.proposal_id < len(state.proposals):
            return UnknownProposal(
                proposal_id=cmd.proposal_id,
                msg=f"Proposal {cmd.proposal_id} does not exist",
            )
        return [EvVoteCast(voter=cmd.caller, proposal_id=cmd.proposal_id)]

    @staticmethod
    def evolve(
        state: VotingState | None,
        event: VotingEvent,
    ) -> VotingState:
        """Derive the next state; the previous state object is never mutated."""
        if isinstance(event, EvElectionCreated):
            return VotingState(
                administrator=event.administrator,
                genesis_description=event.genesis_description,
                restrict_enrollment_to_registration=(
                    event.restrict_enrollment_to_registration
                ),
            )

        assert state is not None, f"{event.type} applied before election.created"

        if isinstance(event, EvParticipantRegistered):
            voters = dict(state.voters)
            voters[event.participant] = Voter(is_registered=True)
            return state.model_copy(update={"voters": voters})

        if isinstance(event, EvWorkflowStatusChanged):
            update: dict = {"status": event.next}
            if event.next == WorkflowStatus.ProposalsRegistrationStarted:
                update["proposals"] = [
                    Proposal(description=state.genesis_description)
                ] + list(state.proposals)
            if event.next == WorkflowStatus.VotesTallied:
                update["lifecycle"] = "closed"
            return state.model_copy(update=update)

        if isinstance(event, EvProposalRegistered):
            proposals = list(state.proposals)
            proposals.append(Proposal(description=event.description))
            return state.model_copy(update={"proposals": proposals})

        if isinstance(event, EvVoteCast):
            voters = dict(state.voters)
            voters[event.voter] = voters[event.voter].model_copy(
                update={"has_voted": True, "voted_proposal_id": event.proposal_id}
            )
            proposals = list(state.proposals)
            counted = proposals[event.proposal_id]
            proposals[event.proposal_id] = counted.model_copy(
                update={"vote_count": counted.vote_count + 1}
            )
            return state.model_copy(update={"voters": voters, "proposals": proposals})

        if isinstance(event, EvVotesTallied):
            return state.model_copy(
                update={"winning_proposal_id": event.winning_proposal_id}
            )

        return state

    @staticmethod
    def is_final_event(e: VotingEvent) -> bool:
        return (
            isinstance(e, EvWorkflowStatusChanged)
            and e.next == WorkflowStatus.VotesTallied
        )

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    @staticmethod
    def read_proposal(
        state: VotingState, caller: str, proposal_id: int
    ) -> Proposal | Rejection:
        rejection = _check_participant(state, caller)
        if rejection is not None:
            return rejection
        if not 0 <= proposal_id < len(state.proposals):
            return UnknownProposal(
                proposal_id=proposal_id, msg=f"Proposal {proposal_id} does not exist"
            )
        return state.proposals[proposal_id].model_copy()

    @staticmethod
    def read_voter(
        state: VotingState, caller: str, participant: str
    ) -> Voter | Rejection:
        rejection = _check_participant(state, caller)
        if rejection is not None:
            return rejection
        return state.voters.get(participant, Voter()).model_copy()
