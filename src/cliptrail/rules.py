"""
Rule engine for Cliptrail.

Evaluates user-defined pattern rules against a candidate capture and yields
extra tags plus ignore/merge directives.
"""

import logging
import re
from dataclasses import dataclass, field
from functools import lru_cache
from typing import Iterable

from cliptrail.models import CaptureEntry, Rule

logger = logging.getLogger(__name__)


@dataclass
class RuleOutcome:
    """Accumulated effect of all matching rules."""

    tags: list[str] = field(default_factory=list)
    ignore: bool = False
    merge: bool = False


@lru_cache(maxsize=256)
def _compile(pattern: str) -> re.Pattern[str] | None:
    try:
        return re.compile(pattern)
    except re.error as e:
        logger.debug("Skipping rule with invalid pattern %r: %s", pattern, e)
        return None


def select_field(candidate: CaptureEntry, field_name: str) -> str:
    """Pick the value a rule compares against."""
    if field_name == "url":
        return candidate.source_url or ""
    if field_name == "app":
        return candidate.source_app or ""
    if field_name == "type":
        return candidate.capture_type.value
    return candidate.text.strip()


def evaluate(candidate: CaptureEntry, rules: Iterable[Rule]) -> RuleOutcome:
    """
    Apply rules in declaration order.

    Every rule is evaluated even after an ignore, so tag accumulation is
    deterministic. A rule whose pattern does not compile is skipped.
    """
    outcome = RuleOutcome()

    for rule in rules:
        compiled = _compile(rule.pattern)
        if compiled is None:
            continue

        if not compiled.search(select_field(candidate, rule.field)):
            continue

        if rule.action == "tag":
            if rule.tag and rule.tag not in outcome.tags:
                outcome.tags.append(rule.tag)
        elif rule.action == "ignore":
            outcome.ignore = True
        elif rule.action == "merge":
            outcome.merge = True

    return outcome
