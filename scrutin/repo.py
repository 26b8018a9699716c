import asyncio
import datetime
import itertools
import logging
from typing import Any, Generic, Type, TypeVar

from pydantic import BaseModel

from scrutin.model import Adapter, AlreadyExists, Rejection, StateBase, Workflow
from scrutin.stream import ConsumedEvent

logger = logging.getLogger(__name__)

# Define type variables for generic typing
C = TypeVar("C", bound=BaseModel)  # Command type
E = TypeVar("E", bound=BaseModel)  # Event type
Wf = TypeVar("Wf", bound=Workflow)  # Workflow type
S = TypeVar("S", bound=StateBase)  # State type


class StoredState(BaseModel, Generic[S]):
    id: str
    version: int
    state: S

    class Config:
        arbitrary_types_allowed = True


class WorkflowNotFound(Exception):
    def __init__(self, id, workflow_type, *args: object) -> None:
        self.agg_id = id
        self.workflow_type = workflow_type
        super().__init__(
            f"Workflow {id} of type {workflow_type} could not be found in the repo"
        )


class AsyncRepo(Generic[C, E, Wf]):
    """In-memory repository serializing commands per workflow.

    Every command for a given workflow id runs under that workflow's
    ``asyncio.Lock``: state is read, ``decide`` is evaluated and, if it
    succeeds, the evolved state and the new events are committed together
    before the next queued command sees the workflow. A ``Rejection`` leaves
    the stored state untouched.

    Committed events are appended to the workflow's event log and handed to
    the optional ``adapter`` after the lock is released, so an adapter may
    itself send commands to the same workflow.
    """

    model: Type[Wf]

    def __init__(
        self,
        model: Type[Wf],
        adapter: Adapter | None = None,
    ) -> None:
        self._workflow_type = model.name()
        self.model = model
        self._adapter = adapter
        self._states: dict[str, StoredState] = {}
        self._logs: dict[str, list[ConsumedEvent[E]]] = {}
        self._locks: dict[str, asyncio.Lock] = {}
        self._global_ids = itertools.count(1)

    def _lock(self, id: str) -> asyncio.Lock:
        lock = self._locks.get(id)
        if lock is None:
            lock = self._locks[id] = asyncio.Lock()
        return lock

    async def create_new(self, cmd: C, id: str) -> StoredState | Rejection:
        async with self._lock(id):
            if id in self._states:
                return AlreadyExists(msg=f"Workflow with id {id} already exists")

            events = self.model.decide(None, cmd)
            if isinstance(events, Rejection):
                return events
            if not events:
                return Rejection(msg="Cannot create workflow with no events")

            state = self.model.evolve_(None, events)
            ss = StoredState(id=id, state=state, version=len(events))
            consumed = self._commit(ss, 0, events)

        await self._notify(consumed)
        return ss

    async def process_command(
        self,
        id: str,
        cmd: C,
    ) -> tuple[StoredState, list[E]] | Rejection:
        async with self._lock(id):
            old = self.get_current_state(id)
            events = self.model.decide(old.state, cmd)
            if isinstance(events, Rejection):
                logger.info(
                    "%s rejected for %s: %s %s",
                    type(cmd).__name__,
                    id,
                    events.kind,
                    events.msg,
                )
                return events
            if not events:
                return old, []

            new_state = self.model.evolve_(old.state, events)
            new = StoredState(
                id=id, state=new_state, version=old.version + len(events)
            )
            consumed = self._commit(new, old.version, events)

        await self._notify(consumed)
        return new, events

    def simulate(self, id: str, cmd: C) -> tuple[StoredState, list[E]] | Rejection:
        """What-if evaluation of ``cmd``; the stored state is never replaced."""
        old = self.get_current_state(id)
        events = self.model.decide(old.state, cmd)
        if isinstance(events, Rejection):
            return events
        if not events:
            return old, []
        new_state = self.model.evolve_(old.state, events)
        return (
            StoredState(id=id, state=new_state, version=old.version + len(events)),
            events,
        )

    def get_current_state(self, id: str) -> StoredState:
        stored = self._states.get(id)
        if stored is None:
            raise WorkflowNotFound(id, self._workflow_type)
        return stored

    def events(self, id: str) -> list[ConsumedEvent[E]]:
        if id not in self._states:
            raise WorkflowNotFound(id, self._workflow_type)
        return list(self._logs.get(id, []))

    @property
    def workflow_ids(self) -> list[str]:
        return list(self._states.keys())

    def _commit(
        self, new: StoredState, base_version: int, events: list[E]
    ) -> list[ConsumedEvent[E]]:
        now = datetime.datetime.now(datetime.timezone.utc)
        consumed = [
            ConsumedEvent(
                workflow_id=new.id,
                event_no=base_version + i,
                global_id=next(self._global_ids),
                at=now,
                workflow_type=self._workflow_type,
                event=e,
            )
            for i, e in enumerate(events, start=1)
        ]
        self._states[new.id] = new
        self._logs.setdefault(new.id, []).extend(consumed)
        logger.debug(
            "Committed %d event(s) for %s at version %d",
            len(events),
            new.id,
            new.version,
        )
        if self.model.is_final_event(events[-1]):
            logger.info("Workflow %s of type %s closed", new.id, self._workflow_type)
        return consumed

    async def _notify(self, consumed: list[ConsumedEvent[E]]) -> None:
        if self._adapter is None:
            return
        for ce in consumed:
            if not self._adapter.to_be_act_on(ce.event):
                continue
            try:
                await self._adapter.act_on(ce)
            except Exception:
                # The state change is already committed; a failing listener
                # must not turn it into a rejection.
                logger.exception(
                    "Adapter failed on %s #%d of %s",
                    ce.event_type,
                    ce.event_no,
                    ce.workflow_id,
                )


class LoggingAdapter(Adapter[Any]):
    """Writes every committed event to the ``scrutin.notifications`` logger."""

    def __init__(self, log: logging.Logger | None = None) -> None:
        self._log = log or logging.getLogger("scrutin.notifications")

    async def act_on(self, event: ConsumedEvent[Any]) -> None:
        body = event.event.model_dump(mode="json", exclude={"type"})
        self._log.info(
            "%s #%d %s %s", event.workflow_id, event.event_no, event.event_type, body
        )

    def to_be_act_on(self, event: Any) -> bool:
        return True
