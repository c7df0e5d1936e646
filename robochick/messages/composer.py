"""Randomized chat message composition from a scenario bank.

A scenario names two groups of placeholders, winners and others. Names for
both groups come from a single draw without replacement over the mod pool, so
no mod can ever appear in both roles of one message.

Placeholders are plain ``{name}`` fields; format specs, conversions and
attribute or index lookups are rejected. Brace escaping depends on the
scenario: a template with slots goes through ``str.format_map``, so ``{{``
renders as ``{``, while a zero-slot template is posted exactly as written.
"""

from __future__ import annotations

import logging
import random
from string import Formatter
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from robochick.models import MessageTemplateBank, Scenario

logger = logging.getLogger(__name__)

_FORMATTER = Formatter()


class ScenarioError(Exception):
    """Base class for message composition failures."""


class ScenarioSelectionFailed(ScenarioError):
    def __init__(self) -> None:
        super().__init__("Message bank contains no scenarios")


class InsufficientCandidates(ScenarioError):
    def __init__(self, required: int, available: int) -> None:
        self.required = required
        self.available = available
        super().__init__(
            f"Scenario needs {required} distinct mods but only {available} are available"
        )


class PlaceholderMismatch(ScenarioError):
    """Raised when drawn names and template placeholders do not line up."""


def pick_random(mods: list[str], n: int, rng: random.Random) -> list[str]:
    """Draw ``n`` distinct names from ``mods`` in one sampling step."""
    if n == 0:
        return []
    pool = list(dict.fromkeys(mods))
    if n > len(pool):
        raise InsufficientCandidates(required=n, available=len(pool))
    return rng.sample(pool, n)


def template_fields(template: str) -> list[str]:
    """Return the replacement field names referenced by ``template``.

    Raises PlaceholderMismatch for malformed templates and for fields that
    carry a conversion or format spec.
    """
    fields: list[str] = []
    try:
        for _, field, spec, conversion in _FORMATTER.parse(template):
            if field is None:
                continue
            if spec or conversion:
                raise PlaceholderMismatch(
                    f"Placeholder {{{field}}} in {template!r} must be a plain name"
                )
            fields.append(field)
    except ValueError as exc:
        raise PlaceholderMismatch(f"Malformed template {template!r}: {exc}") from exc
    return fields


def render_scenario(scenario: Scenario, winners: list[str], others: list[str]) -> str:
    if len(winners) != len(scenario.winners):
        raise PlaceholderMismatch(
            f"Scenario declares {len(scenario.winners)} winners, got {len(winners)}"
        )
    if len(others) != len(scenario.others):
        raise PlaceholderMismatch(
            f"Scenario declares {len(scenario.others)} others, got {len(others)}"
        )

    mapping = dict(zip(scenario.winners, winners))
    mapping.update(zip(scenario.others, others))

    unresolved = [field for field in template_fields(scenario.template) if field not in mapping]
    if unresolved:
        raise PlaceholderMismatch(f"Template references unknown placeholders: {unresolved}")

    if not mapping:
        return scenario.template
    try:
        return scenario.template.format_map(mapping)
    except (KeyError, ValueError, IndexError) as exc:
        raise PlaceholderMismatch(f"Could not render {scenario.template!r}: {exc}") from exc


def compose(bank: MessageTemplateBank, rng: random.Random) -> str:
    """Pick a scenario and fill its placeholders with distinct mods."""
    if not bank.scenarios:
        raise ScenarioSelectionFailed()

    scenario = rng.choice(bank.scenarios)
    m, n = len(scenario.winners), len(scenario.others)
    if m + n > len(bank.mods):
        raise InsufficientCandidates(required=m + n, available=len(bank.mods))

    drawn = pick_random(bank.mods, m + n, rng)
    if len(drawn) != m + n:
        raise PlaceholderMismatch(f"Expected {m + n} names, drew {len(drawn)}")

    message = scenario.build(drawn[:m], drawn[m:])
    logger.debug("Composed message from scenario with %d winners, %d others", m, n)
    return message
