"""Runtime workflow definition validator.

Checks workflow classes and phase tables for structural issues that would
otherwise only surface at runtime.  Used by the ``scrutin validate`` CLI
command.

Example::

    from scrutin.validation import validate_workflow, validate_transitions
    from scrutin.voting import TRANSITIONS, VotingWorkflow, WorkflowStatus

    errors = validate_workflow(VotingWorkflow)
    errors += validate_transitions(TRANSITIONS, list(WorkflowStatus))
"""

from __future__ import annotations

import inspect
import sys
from typing import Any, Hashable, Sequence, Type, get_type_hints

from scrutin.model import Workflow


def validate_workflow(workflow_class: Type[Workflow]) -> list[str]:
    """Validate a single workflow class.

    Checks performed:
    - ``name()`` is implemented and returns a non-empty string
    - ``decide()`` takes ``state`` and ``cmd`` and has a return annotation
    - ``evolve()`` takes ``state`` and ``event`` and has a return annotation
    - ``is_final_event()`` is callable
    - Schema version is a positive int

    Returns:
        List of error message strings.  Empty list means no issues found.
    """
    errors: list[str] = []
    name = getattr(workflow_class, "__name__", str(workflow_class))

    # 1. name() returns a non-empty string
    try:
        wf_name = workflow_class.name()
        if not wf_name or not isinstance(wf_name, str):
            errors.append(f"{name}.name() must return a non-empty string")
    except (NotImplementedError, TypeError) as exc:
        errors.append(f"{name}.name() raised {type(exc).__name__}: {exc}")

    # 2. schema_version() returns a positive int
    sv = workflow_class.schema_version()
    if not isinstance(sv, int) or sv < 1:
        errors.append(
            f"{name}.schema_version() must return a positive int, got {sv!r}"
        )

    # 3. Required abstract methods exist and are callable
    for method_name in ("decide", "evolve", "is_final_event"):
        method = getattr(workflow_class, method_name, None)
        if method is None:
            errors.append(f"{name}.{method_name}() is not defined")
            continue
        if not callable(method):
            errors.append(f"{name}.{method_name} is not callable")

    # 4. decide() / evolve() signatures
    for method_name, expected, returns in (
        ("decide", {"state", "cmd"}, "list[E] | Rejection"),
        ("evolve", {"state", "event"}, "S"),
    ):
        method = getattr(workflow_class, method_name, None)
        if not (method and callable(method)):
            continue
        try:
            params = list(inspect.signature(method).parameters.keys())
        except (ValueError, TypeError):
            continue
        if not expected.issubset(set(params)):
            errors.append(
                f"{name}.{method_name}() should have parameters "
                f"{', '.join(repr(p) for p in sorted(expected))}, found: {params}"
            )
        try:
            hints = get_type_hints(method)
        except (NameError, TypeError):
            hints = {}
        if "return" not in hints:
            errors.append(
                f"{name}.{method_name}() has no return type annotation "
                f"(expected {returns})"
            )

    return errors


def validate_transitions(
    table: dict[Any, Any], order: Sequence[Hashable]
) -> list[str]:
    """Check that ``table`` walks ``order`` forward one phase at a time.

    Every phase but the last must have exactly the next phase as its only
    successor, and the last phase must have none.
    """
    errors: list[str] = []
    if not order:
        return ["Phase order is empty"]

    for phase in table:
        if phase not in order:
            errors.append(f"Transition from unknown phase {phase!r}")

    for current, following in zip(order, order[1:]):
        target = table.get(current)
        if target is None:
            errors.append(f"Phase {current!r} has no outgoing transition")
        elif target != following:
            errors.append(
                f"Phase {current!r} moves to {target!r}, expected {following!r}"
            )

    if order[-1] in table:
        errors.append(f"Terminal phase {order[-1]!r} must not have a transition")

    return errors


def discover_and_validate(module_path: str | None = None) -> dict[str, list[str]]:
    """Discover all ``Workflow`` subclasses in a module and validate them.

    Args:
        module_path: Dotted module path (e.g. ``scrutin.voting.workflow``).
                     When ``None``, searches all currently-imported modules.

    Returns:
        Dict mapping workflow class name → list of error strings.
        Classes with no issues are omitted.
    """
    import importlib

    issues: dict[str, list[str]] = {}

    modules: list[Any] = []
    if module_path:
        try:
            modules = [importlib.import_module(module_path)]
        except ImportError as exc:
            issues["<import>"] = [f"Cannot import module '{module_path}': {exc}"]
            return issues
    else:
        modules = list(sys.modules.values())

    found: set[Type[Workflow]] = set()
    for mod in modules:
        if mod is None:
            continue
        for obj in vars(mod).values():
            if (
                isinstance(obj, type)
                and issubclass(obj, Workflow)
                and obj is not Workflow
                and not inspect.isabstract(obj)
            ):
                found.add(obj)

    for wf_class in found:
        errs = validate_workflow(wf_class)
        if errs:
            issues[wf_class.__name__] = errs

    return issues
