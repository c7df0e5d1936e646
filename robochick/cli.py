"""Click CLI for previewing message banks and crafting signed test callbacks."""

from __future__ import annotations

import json
import random
from pathlib import Path

import click

from robochick.audit.logger import validate_audit_chain
from robochick.eventsub.signature import sign
from robochick.messages.composer import ScenarioError, compose, template_fields
from robochick.messages.sources import MessageBankError, load_bank_from_file


@click.group()
def cli() -> None:
    """robochick message bank and EventSub tooling."""


@cli.command("compose")
@click.argument("bank_path", type=click.Path(exists=True, dir_okay=False))
@click.option("--seed", type=int, default=None, help="Seed for reproducible output.")
@click.option("--count", type=int, default=1, show_default=True, help="Messages to print.")
def compose_command(bank_path: str, seed: int | None, count: int) -> None:
    """Compose messages from a local message bank JSON file."""
    try:
        bank = load_bank_from_file(bank_path)
    except MessageBankError as exc:
        raise click.ClickException(str(exc)) from exc
    rng = random.Random(seed)
    for _ in range(count):
        try:
            click.echo(compose(bank, rng))
        except ScenarioError as exc:
            raise click.ClickException(f"{type(exc).__name__}: {exc}") from exc


@cli.command("validate-bank")
@click.argument("bank_path", type=click.Path(exists=True, dir_okay=False))
def validate_bank(bank_path: str) -> None:
    """Check every scenario in a message bank against its mod pool."""
    try:
        bank = load_bank_from_file(bank_path)
    except MessageBankError as exc:
        raise click.ClickException(str(exc)) from exc

    problems: list[dict[str, object]] = []
    for index, scenario in enumerate(bank.scenarios):
        if scenario.slots > len(bank.mods):
            problems.append({
                "scenario": index,
                "problem": f"needs {scenario.slots} mods, pool has {len(bank.mods)}",
            })
        try:
            declared = {*scenario.winners, *scenario.others}
            unknown = [f for f in template_fields(scenario.template) if f not in declared]
        except ScenarioError as exc:
            problems.append({"scenario": index, "problem": str(exc)})
            continue
        if unknown:
            problems.append({"scenario": index, "problem": f"undeclared placeholders {unknown}"})

    click.echo(json.dumps({
        "scenarios": len(bank.scenarios),
        "mods": len(bank.mods),
        "problems": problems,
    }, indent=2))
    if problems:
        raise SystemExit(1)


@cli.command("sign")
@click.option("--secret", required=True, envvar="TWITCH_EVENTSUB_SUBSCRIPTION_SECRET")
@click.option("--message-id", required=True)
@click.option("--timestamp", required=True)
@click.argument("body_file", type=click.File("rb"))
def sign_command(secret: str, message_id: str, timestamp: str, body_file) -> None:  # noqa: ANN001
    """Print the signature header value for a callback body."""
    click.echo(sign(message_id, timestamp, body_file.read(), secret))


@cli.command("verify-audit")
@click.argument("log_path", type=click.Path(exists=True, dir_okay=False))
def verify_audit(log_path: str) -> None:
    """Validate the hash chain of an audit log."""
    result = validate_audit_chain(Path(log_path))
    if result.valid:
        click.echo("Audit chain intact")
        return
    click.echo(f"Audit chain broken at line {result.broken_at_line}", err=True)
    raise SystemExit(1)
