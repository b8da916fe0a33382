"""Rule matcher: ordered predicate -> mutation rules over transactions."""

from __future__ import annotations

import datetime as dt
import re
from collections.abc import Callable, Iterable, Sequence
from dataclasses import replace
from functools import lru_cache

from .logging_setup import get_logger
from .models import MAX_TAGS, ImportableTransaction, ImportRule, RuleCondition

_logger = get_logger("statement_import.rules")

_MAX_ORDER = float("inf")
_EPOCH = dt.datetime.min.replace(tzinfo=dt.UTC)


@lru_cache(maxsize=256)
def _compile(pattern: str) -> re.Pattern[str] | None:
    try:
        return re.compile(pattern, re.IGNORECASE)
    except re.error:
        _logger.debug("rules:bad_regex pattern=%r", pattern)
        return None


def condition_matches(condition: RuleCondition, text: str | None) -> bool:
    """Case-insensitive test; a malformed regex never matches."""
    value = text or ""
    if condition.kind == "contains":
        return condition.value.lower() in value.lower()
    compiled = _compile(condition.value)
    return compiled is not None and compiled.search(value) is not None


def merge_tags(current: Sequence[str], extra: Iterable[str], cap: int = MAX_TAGS) -> tuple[str, ...]:
    """Set union in insertion order, capped."""
    return tuple(dict.fromkeys([*current, *extra]))[:cap]


def _aware(value: dt.datetime | None) -> dt.datetime:
    if value is None:
        return _EPOCH
    return value if value.tzinfo is not None else value.replace(tzinfo=dt.UTC)


def order_rules(rules: Iterable[ImportRule]) -> list[ImportRule]:
    """Ascending ``sort_order`` (unordered last), then creation time, then id."""
    return sorted(
        rules,
        key=lambda r: (
            r.sort_order if r.sort_order is not None else _MAX_ORDER,
            _aware(r.created_at),
            r.id if r.id is not None else 0,
        ),
    )


def first_match(
    rules: Sequence[ImportRule], field_value: Callable[[str], str | None]
) -> ImportRule | None:
    """First enabled rule whose condition holds; ``field_value`` reads a field."""
    for rule in rules:
        if rule.enabled and condition_matches(rule.when, field_value(rule.when.field)):
            return rule
    return None


def apply_rules(tx: ImportableTransaction, rules: Sequence[ImportRule]) -> ImportableTransaction:
    """Apply the first matching enabled rule to ``tx``.

    ``rules`` must already be ordered (see :func:`order_rules`). The rule's
    category, when set, overwrites the transaction's; its tags are merged into
    the existing tags. Evaluation stops at the first match.
    """

    rule = first_match(rules, lambda name: getattr(tx, name))
    if rule is None:
        return tx
    updates: dict[str, object] = {}
    if rule.action.category:
        updates["category"] = rule.action.category
    if rule.action.tags:
        updates["tags"] = merge_tags(tx.tags, rule.action.tags)
    return replace(tx, **updates) if updates else tx


__all__ = ["condition_matches", "merge_tags", "order_rules", "first_match", "apply_rules"]
