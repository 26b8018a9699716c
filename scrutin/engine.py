"""Caller-facing API for a single election.

``VotingEngine`` turns each operation into a command for the voting
workflow and pushes it through an ``AsyncRepo``, which serializes commands
per election. Rejections are raised as ``CommandRejected`` so the error kind
and the offending input reach the caller unchanged.

Example::

    repo = AsyncRepo(VotingWorkflow, adapter=LoggingAdapter())
    engine = await VotingEngine.open(repo, "board-2024", administrator="alice")

    await engine.enroll_participant("alice", "bob")
    await engine.begin_proposals_registration("alice")
    proposal_id = await engine.submit_proposal("bob", "Move the meeting to Friday")
"""
from __future__ import annotations

import logging
from typing import Any

from pydantic import BaseModel

from scrutin.config import ElectionConfig
from scrutin.model import Rejection
from scrutin.repo import AsyncRepo, StoredState
from scrutin.stream import ConsumedEvent
from scrutin.voting.models import (
    CmdBeginProposalsRegistration,
    CmdBeginVotingSession,
    CmdCastVote,
    CmdCreateElection,
    CmdEndProposalsRegistration,
    CmdEndVotingSession,
    CmdEnrollParticipant,
    CmdSubmitProposal,
    CmdTallyVotes,
    EvProposalRegistered,
    EvVotesTallied,
    EvWorkflowStatusChanged,
    Proposal,
    QryGetProposal,
    Voter,
    VotingEvent,
    VotingState,
    WorkflowStatus,
)
from scrutin.voting.workflow import VotingWorkflow

logger = logging.getLogger(__name__)


class CommandRejected(Exception):
    def __init__(self, rejection: Rejection, *args: object) -> None:
        self.rejection = rejection
        super().__init__(f"{rejection.kind}: {rejection.msg}")

    @property
    def kind(self) -> str:
        return self.rejection.kind


class VotingEngine:
    def __init__(self, repo: AsyncRepo, election_id: str) -> None:
        self._repo = repo
        self.election_id = election_id

    @classmethod
    async def open(
        cls,
        repo: AsyncRepo,
        election_id: str,
        administrator: str,
        config: ElectionConfig | None = None,
    ) -> VotingEngine:
        """Create a new election in ``repo`` and return an engine bound to it."""
        config = config or ElectionConfig()
        result = await repo.create_new(
            CmdCreateElection(
                administrator=administrator,
                genesis_description=config.genesis_description,
                restrict_enrollment_to_registration=(
                    config.restrict_enrollment_to_registration
                ),
            ),
            election_id,
        )
        if isinstance(result, Rejection):
            raise CommandRejected(result)
        logger.info(
            "Election %s opened, administrator %s", election_id, administrator
        )
        return cls(repo, election_id)

    # ------------------------------------------------------------------
    # Administrator operations
    # ------------------------------------------------------------------

    async def enroll_participant(self, caller: str, participant: str) -> list[VotingEvent]:
        return await self._send(CmdEnrollParticipant(caller=caller, participant=participant))

    async def begin_proposals_registration(self, caller: str) -> list[VotingEvent]:
        return await self._send(CmdBeginProposalsRegistration(caller=caller))

    async def end_proposals_registration(self, caller: str) -> list[VotingEvent]:
        return await self._send(CmdEndProposalsRegistration(caller=caller))

    async def begin_voting_session(self, caller: str) -> list[VotingEvent]:
        return await self._send(CmdBeginVotingSession(caller=caller))

    async def end_voting_session(self, caller: str) -> list[VotingEvent]:
        return await self._send(CmdEndVotingSession(caller=caller))

    async def tally_votes(self, caller: str) -> int:
        """Close the election and return the winning proposal id."""
        events = await self._send(CmdTallyVotes(caller=caller))
        tallied = next(e for e in events if isinstance(e, EvVotesTallied))
        logger.info(
            "Election %s tallied, winning proposal %d",
            self.election_id,
            tallied.winning_proposal_id,
        )
        return tallied.winning_proposal_id

    # ------------------------------------------------------------------
    # Participant operations
    # ------------------------------------------------------------------

    async def submit_proposal(self, caller: str, description: str) -> int:
        events = await self._send(CmdSubmitProposal(caller=caller, description=description))
        registered = next(e for e in events if isinstance(e, EvProposalRegistered))
        return registered.proposal_id

    async def cast_vote(self, caller: str, proposal_id: int) -> list[VotingEvent]:
        return await self._send(CmdCastVote(caller=caller, proposal_id=proposal_id))

    def get_proposal(self, caller: str, proposal_id: int) -> Proposal:
        query = QryGetProposal(caller=caller, proposal_id=proposal_id)
        return self._read(
            VotingWorkflow.read_proposal(self.state, query.caller, query.proposal_id)
        )

    def get_voter(self, caller: str, participant: str) -> Voter:
        return self._read(VotingWorkflow.read_voter(self.state, caller, participant))

    # ------------------------------------------------------------------
    # Public reads
    # ------------------------------------------------------------------

    def current_winner(self) -> int:
        """Winning proposal id; only meaningful once the votes are tallied."""
        return self.state.winning_proposal_id

    def workflow_status(self) -> WorkflowStatus:
        return self.state.status

    @property
    def state(self) -> VotingState:
        stored: StoredState = self._repo.get_current_state(self.election_id)
        return stored.state

    def events(self) -> list[ConsumedEvent[VotingEvent]]:
        return self._repo.events(self.election_id)

    # ------------------------------------------------------------------

    async def _send(self, cmd: BaseModel) -> list[VotingEvent]:
        result = await self._repo.process_command(self.election_id, cmd)
        if isinstance(result, Rejection):
            raise CommandRejected(result)
        _, events = result
        for e in events:
            if isinstance(e, EvWorkflowStatusChanged):
                logger.info(
                    "Election %s moved from %s to %s",
                    self.election_id,
                    e.previous.name,
                    e.next.name,
                )
        return events

    @staticmethod
    def _read(result: Any) -> Any:
        if isinstance(result, Rejection):
            raise CommandRejected(result)
        return result
