"""
Pytest configuration and shared fixtures for scrutin tests.
"""

import pytest

from scrutin.engine import VotingEngine
from scrutin.model import Adapter
from scrutin.repo import AsyncRepo
from scrutin.stream import ConsumedEvent
from scrutin.voting.models import WorkflowStatus
from scrutin.voting.workflow import VotingWorkflow

ADMIN = "0xadmin"
ALICE = "0xalice"
BOB = "0xbob"
CAROL = "0xcarol"
MALLORY = "0xmallory"


class RecordingAdapter(Adapter):
    """Adapter that keeps every notification it receives, in order."""

    def __init__(self):
        self.received: list[ConsumedEvent] = []

    async def act_on(self, event: ConsumedEvent) -> None:
        self.received.append(event)

    def to_be_act_on(self, event) -> bool:
        return True

    @property
    def types(self) -> list[str]:
        return [ce.event_type for ce in self.received]


@pytest.fixture
def adapter() -> RecordingAdapter:
    return RecordingAdapter()


@pytest.fixture
def repo(adapter: RecordingAdapter) -> AsyncRepo:
    return AsyncRepo(VotingWorkflow, adapter=adapter)


@pytest.fixture
async def engine(repo: AsyncRepo) -> VotingEngine:
    """A freshly created election administered by ADMIN."""
    return await VotingEngine.open(repo, "election-1", administrator=ADMIN)


_STEPS = {
    WorkflowStatus.ProposalsRegistrationStarted: "begin_proposals_registration",
    WorkflowStatus.ProposalsRegistrationEnded: "end_proposals_registration",
    WorkflowStatus.VotingSessionStarted: "begin_voting_session",
    WorkflowStatus.VotingSessionEnded: "end_voting_session",
    WorkflowStatus.VotesTallied: "tally_votes",
}


async def advance_to(engine: VotingEngine, target: WorkflowStatus) -> None:
    """Drive ``engine`` forward as ADMIN until it reaches ``target``."""
    while engine.workflow_status() < target:
        following = WorkflowStatus(engine.workflow_status() + 1)
        await getattr(engine, _STEPS[following])(ADMIN)


@pytest.fixture
async def voting_engine(engine: VotingEngine) -> VotingEngine:
    """Election in VotingSessionStarted with ALICE, BOB and CAROL enrolled
    and proposals 1 ("Alpha") and 2 ("Beta") registered."""
    for participant in (ALICE, BOB, CAROL):
        await engine.enroll_participant(ADMIN, participant)
    await engine.begin_proposals_registration(ADMIN)
    await engine.submit_proposal(ALICE, "Alpha")
    await engine.submit_proposal(BOB, "Beta")
    await advance_to(engine, WorkflowStatus.VotingSessionStarted)
    return engine
