"""
Unit tests for scrutin.model module.
"""
from abc import ABC
from typing import Literal

import pytest
from pydantic import BaseModel

from scrutin.model import AlreadyExists, EventBase, Rejection, StateBase, Workflow
from scrutin.voting.models import Forbidden, InvalidPhase, WorkflowStatus


class TestEventBase:
    """Tests for EventBase abstract class."""

    def test_event_base_requires_type_override(self):
        """Subclasses must override the type field."""
        with pytest.raises(TypeError, match="must override `type` with a Literal"):
            class InvalidEvent(EventBase):
                pass

    def test_abstract_intermediate_event_is_allowed(self):
        class Intermediate(EventBase, ABC):
            pass

        class Concrete(Intermediate):
            type: Literal["concrete"] = "concrete"

        assert Concrete().type == "concrete"

    def test_event_serialization_excludes_metadata(self):
        class Counted(EventBase):
            type: Literal["counted"] = "counted"
            value: int

        event = Counted(value=42, metadata_={"source": "test"})
        json_data = event.model_dump_json()
        assert '"value":42' in json_data
        assert '"type":"counted"' in json_data
        assert "metadata_" not in json_data


class TestRejection:
    """Tests for Rejection values."""

    def test_kind_is_class_name(self):
        assert Rejection().kind == "Rejection"
        assert AlreadyExists(msg="dup").kind == "AlreadyExists"
        assert Forbidden(caller="0x1").kind == "Forbidden"

    def test_rejection_carries_offending_input(self):
        r = InvalidPhase(
            operation="cast_vote",
            current=WorkflowStatus.RegisteringVoters,
            required=WorkflowStatus.VotingSessionStarted,
        )
        dumped = r.model_dump(mode="json")
        assert dumped["operation"] == "cast_vote"
        assert dumped["current"] == 0
        assert dumped["required"] == 3


class _Cmd(BaseModel):
    value: int


class _Added(EventBase):
    type: Literal["added"] = "added"
    value: int


class _Total(StateBase):
    total: int = 0


class _Adder(Workflow[_Added, _Cmd, _Total]):
    @classmethod
    def name(cls) -> str:
        return "adder"

    @staticmethod
    def decide(state: _Total | None, cmd: _Cmd) -> list[_Added] | Rejection:
        if cmd.value < 0:
            return Rejection(msg="negative")
        return [_Added(value=cmd.value), _Added(value=cmd.value)]

    @staticmethod
    def evolve(state: _Total | None, event: _Added) -> _Total:
        total = state.total if state else 0
        return _Total(total=total + event.value)

    @staticmethod
    def is_final_event(e: _Added) -> bool:
        return False


class TestWorkflow:
    """Tests for the Workflow base class helpers."""

    def test_decide_and_evolve(self):
        state, events = _Adder.decide_and_evolve(None, _Cmd(value=3))
        assert state.total == 6
        assert len(events) == 2

    def test_decide_and_evolve_rejection(self):
        result = _Adder.decide_and_evolve(_Total(total=1), _Cmd(value=-1))
        assert isinstance(result, Rejection)
        assert result.msg == "negative"

    def test_schema_version_default(self):
        assert _Adder.schema_version() == 1

    def test_workflow_is_abstract(self):
        with pytest.raises(TypeError):
            Workflow()
