import datetime
from typing import Generic, TypeVar

T = TypeVar("T")


class ConsumedEvent(Generic[T]):
    """A committed event together with its position in the election's log."""

    __slots__ = (
        "workflow_id",
        "event_no",
        "global_id",
        "at",
        "workflow_type",
        "event",
    )

    def __init__(
        self,
        *,
        workflow_id: str,
        event_no: int,
        global_id: int,
        at: datetime.datetime,
        workflow_type: str,
        event: T,
    ):
        self.workflow_id = workflow_id
        self.event_no = event_no
        self.global_id = global_id
        self.at = at
        self.workflow_type = workflow_type
        self.event = event

    @property
    def event_type(self) -> str:
        return getattr(self.event, "type", type(self.event).__name__)

    def __repr__(self) -> str:
        return (
            f"ConsumedEvent(workflow_id={self.workflow_id!r}, event_no={self.event_no}, "
            f"global_id={self.global_id}, event_type={self.event_type!r}, "
            f"workflow_type={self.workflow_type!r})"
        )
