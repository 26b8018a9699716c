"""Command-line interface for Scrutin."""

import asyncio
import inspect
import json
import logging
import sys
import tomllib
from pathlib import Path
from typing import Any

import click
from pydantic import ValidationError

from scrutin.config import ElectionConfig, load_scrutin_toml
from scrutin.engine import CommandRejected, VotingEngine
from scrutin.repo import AsyncRepo, LoggingAdapter
from scrutin.validation import discover_and_validate, validate_transitions
from scrutin.voting.models import TRANSITIONS, WorkflowStatus
from scrutin.voting.workflow import VotingWorkflow

# Operations a scenario step may name; current_winner is the only one
# that does not take the caller.
SCENARIO_OPERATIONS = {
    "enroll_participant",
    "begin_proposals_registration",
    "end_proposals_registration",
    "begin_voting_session",
    "end_voting_session",
    "tally_votes",
    "submit_proposal",
    "cast_vote",
    "get_proposal",
    "get_voter",
    "current_winner",
}


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def load_scenario(path: Path) -> dict[str, Any]:
    """Read a scenario from a ``.json`` or ``.toml`` file and check its shape."""
    if path.suffix == ".toml":
        with open(path, "rb") as fh:
            data = tomllib.load(fh)
    else:
        data = json.loads(path.read_text(encoding="utf-8"))

    if not isinstance(data, dict):
        raise ValueError("Scenario must be a table/object")
    if not data.get("administrator"):
        raise ValueError("Scenario needs an 'administrator'")
    steps = data.get("steps", [])
    if not isinstance(steps, list):
        raise ValueError("'steps' must be a list")
    for i, step in enumerate(steps, start=1):
        if not isinstance(step, dict):
            raise ValueError(f"Step {i}: must be a table/object, got {step!r}")
        op = step.get("op")
        if op not in SCENARIO_OPERATIONS:
            raise ValueError(f"Step {i}: unknown operation {op!r}")
        if op != "current_winner" and not step.get("caller"):
            raise ValueError(f"Step {i}: {op} needs a 'caller'")
        args = step.get("args", {})
        if not isinstance(args, dict):
            raise ValueError(f"Step {i}: 'args' must be a table/object")
        expected = set(inspect.signature(getattr(VotingEngine, op)).parameters)
        expected -= {"self", "caller"}
        if set(args) != expected:
            raise ValueError(
                f"Step {i}: {op} takes {sorted(expected)}, got {sorted(args)}"
            )
    return data


def _describe(result: Any) -> str:
    if result is None:
        return ""
    if isinstance(result, list):
        return ", ".join(e.type for e in result)
    if hasattr(result, "model_dump_json"):
        return result.model_dump_json()
    return str(result)


async def run_scenario(
    scenario: dict[str, Any], config: ElectionConfig, strict: bool = False
) -> tuple[VotingEngine, int]:
    """Replay ``scenario`` against a fresh election.

    Returns the engine and the number of rejected steps.  With ``strict``
    the replay stops at the first rejection.
    """
    repo = AsyncRepo(VotingWorkflow, adapter=LoggingAdapter())
    engine = await VotingEngine.open(
        repo,
        scenario.get("election", "election"),
        administrator=scenario["administrator"],
        config=config,
    )
    rejected = 0
    for i, step in enumerate(scenario.get("steps", []), start=1):
        op = step["op"]
        args = step.get("args", {})
        method = getattr(engine, op)
        try:
            if op == "current_winner":
                result = method()
            else:
                result = method(step["caller"], **args)
            if inspect.isawaitable(result):
                result = await result
        except (CommandRejected, ValidationError) as e:
            rejected += 1
            click.echo(f"{i:>3} ✗ {op} by {step.get('caller')}: {e}")
            if strict:
                break
            continue
        click.echo(f"{i:>3} ✓ {op} {_describe(result)}".rstrip())
    return engine, rejected


# ---------------------------------------------------------------------------
# Click CLI
# ---------------------------------------------------------------------------


@click.group()
@click.option(
    "--log-level",
    envvar="SCRUTIN_LOG_LEVEL",
    default=None,
    help="Logging level (default from scrutin.toml, else INFO)",
)
@click.option(
    "--config",
    "config_path",
    type=click.Path(dir_okay=False),
    help="Path to scrutin.toml",
)
@click.pass_context
def cli(ctx, log_level, config_path):
    """Scrutin - phase-gated elections"""
    ctx.ensure_object(dict)
    config = ElectionConfig.from_mapping(load_scrutin_toml(config_path))
    if log_level:
        config.log_level = log_level
    logging.basicConfig(
        level=config.log_level.upper(),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )
    ctx.obj["config"] = config


@cli.command("validate")
@click.argument("module", required=False)
def validate(module):
    """Validate workflow definitions (default: the voting workflow)."""
    issues = discover_and_validate(module or "scrutin.voting.workflow")
    phase_errors = validate_transitions(TRANSITIONS, list(WorkflowStatus))
    if phase_errors:
        issues["TRANSITIONS"] = phase_errors

    if not issues:
        click.echo("✓ All workflow definitions are valid")
        return

    for name, errors in issues.items():
        click.echo(f"✗ {name}", err=True)
        for err in errors:
            click.echo(f"    - {err}", err=True)
    sys.exit(1)


@cli.command("run")
@click.argument("scenario", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.option("--strict", is_flag=True, help="Stop at the first rejected step")
@click.pass_context
def run(ctx, scenario, strict):
    """Replay a scenario file through a fresh election."""
    try:
        data = load_scenario(scenario)
    except (ValueError, json.JSONDecodeError, tomllib.TOMLDecodeError) as e:
        click.echo(f"Error: invalid scenario {scenario}: {e}", err=True)
        sys.exit(2)

    engine, rejected = asyncio.run(run_scenario(data, ctx.obj["config"], strict))

    click.echo(f"\nElection: {engine.election_id}")
    click.echo(f"{'#':<5} {'Event Type':<26} {'Details'}")
    click.echo("-" * 60)
    for ce in engine.events():
        details = ce.event.model_dump(mode="json", exclude={"type"})
        click.echo(f"{ce.event_no:<5} {ce.event_type:<26} {details}")

    status = engine.workflow_status()
    click.echo(f"\nStatus: {status.name}")
    if status == WorkflowStatus.VotesTallied:
        winner = engine.current_winner()
        description = engine.state.proposals[winner].description
        click.echo(f"Winner: proposal {winner} ({description})")

    if rejected:
        click.echo(f"{rejected} step(s) rejected")
        if strict:
            sys.exit(1)


def main():
    cli(obj={})


if __name__ == "__main__":
    main()
