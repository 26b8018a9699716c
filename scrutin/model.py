from abc import ABC, abstractmethod
from typing import Any, Generic, Literal, TypeVar

from pydantic import BaseModel, Field

from scrutin.stream import ConsumedEvent


class EventBase(BaseModel, ABC):
    # Optional metadata injected by the repo; not part of the event schema.
    metadata_: dict[str, Any] = Field(default_factory=dict, exclude=True)

    def __init_subclass__(cls, **kwargs):
        super().__init_subclass__(**kwargs)

        if cls is EventBase:
            return

        # Intermediate abstract events are meant to be subclassed.
        if ABC in cls.__bases__:
            return

        annotation = cls.__annotations__.get("type")
        if annotation is None:
            model_fields = getattr(cls, "model_fields", {})
            type_field = model_fields.get("type")
            if type_field is not None and not type_field.is_required():
                return
            raise TypeError(
                f"{cls.__name__} must override `type` with a Literal[...] default."
            )


class StateBase(BaseModel):
    lifecycle: Literal["active", "closed"] = "active"


C = TypeVar("C", bound=BaseModel)  # Command type
E = TypeVar("E", bound=EventBase)  # Event type
S = TypeVar("S", bound=StateBase)


class Rejection(BaseModel):
    msg: str = ""

    @property
    def kind(self) -> str:
        return type(self).__name__


class AlreadyExists(Rejection):
    pass


class Workflow(BaseModel, Generic[E, C, S], ABC):
    @classmethod
    @abstractmethod
    def name(cls) -> str:
        pass

    @classmethod
    def schema_version(cls) -> int:
        """Schema version for stored events. Override when evolving event schemas."""
        return 1

    @classmethod
    def decide_and_evolve(
        cls, state: S | None, cmd: C
    ) -> Rejection | tuple[S | None, list[E]]:
        d = cls.decide(state, cmd)
        if isinstance(d, Rejection):
            return d
        new_state = cls.evolve_(state, d)
        return new_state, d

    @classmethod
    def evolve_(cls, state: S | None, events: list[E]) -> S:
        """Evolve state through events."""
        for e in events:
            state = cls.evolve(state, e)
        assert state
        return state

    @staticmethod
    @abstractmethod
    def decide(state: S | None, cmd: C) -> list[E] | Rejection:
        pass

    @staticmethod
    @abstractmethod
    def evolve(state: S | None, event: E) -> S:
        pass

    @staticmethod
    @abstractmethod
    def is_final_event(e: E) -> bool:
        pass


class Adapter(Generic[E], ABC):
    """Receives committed events; the repo never calls it for rejected commands."""

    @abstractmethod
    async def act_on(self, event: ConsumedEvent[E]) -> None:
        """Handle one notification, after the state change it describes is committed."""

    @abstractmethod
    def to_be_act_on(self, event: E) -> bool:
        pass
