import datetime as dt
from decimal import Decimal

from statement_import.models import (
    ImportableTransaction,
    ImportRule,
    RuleAction,
    RuleCondition,
    TransactionType,
)
from statement_import.rules import apply_rules, condition_matches, merge_tags, order_rules


def _tx(description="Netflix Monthly", **kw):
    return ImportableTransaction(
        date="2024-01-05",
        description=description,
        amount=Decimal("15.99"),
        type=TransactionType.EXPENSE,
        **kw,
    )


def _rule(value, *, category=None, tags=(), kind="contains", field="description", **kw):
    return ImportRule(
        name=kw.pop("name", value),
        when=RuleCondition(field=field, kind=kind, value=value),
        action=RuleAction(category=category, tags=tags),
        **kw,
    )


def test_first_match_wins():
    rules = [
        _rule("netflix", category="Subscriptions", sort_order=1),
        _rule("net", category="Other", sort_order=2),
    ]
    assert apply_rules(_tx(), order_rules(rules)).category == "Subscriptions"


def test_order_rules_by_sort_order_then_creation_time():
    t0 = dt.datetime(2024, 1, 1, tzinfo=dt.UTC)
    late = _rule("a", name="late", sort_order=None, created_at=t0)
    second = _rule("b", name="second", sort_order=1, created_at=t0 + dt.timedelta(hours=1))
    first = _rule("c", name="first", sort_order=1, created_at=t0)
    zero = _rule("d", name="zero", sort_order=0, created_at=dt.datetime(2024, 6, 1))
    assert [r.name for r in order_rules([late, second, first, zero])] == [
        "zero",
        "first",
        "second",
        "late",
    ]


def test_disabled_rules_are_skipped():
    rules = [_rule("netflix", category="Nope", enabled=False), _rule("monthly", category="Subs")]
    assert apply_rules(_tx(), rules).category == "Subs"


def test_contains_is_case_insensitive_and_regex_is_supported():
    assert condition_matches(RuleCondition(value="NETFLIX"), "netflix.com")
    regex = RuleCondition(kind="regex", value=r"^net\w+\s+monthly$")
    assert condition_matches(regex, "Netflix Monthly")
    assert not condition_matches(regex, "My Netflix Monthly")


def test_malformed_regex_never_matches():
    rules = [_rule("([unclosed", kind="regex", category="Broken"), _rule("netflix", category="Ok")]
    assert apply_rules(_tx(), rules).category == "Ok"


def test_rule_matches_on_other_fields():
    rule = _rule("amazon", field="merchant_canonical", tags=("online",))
    tx = _tx(description="AMZN MKTP US*2K3", merchant_canonical="Amazon")
    assert apply_rules(tx, [rule]).tags == ("online",)
    # Unset field reads as empty text
    assert apply_rules(_tx(), [_rule("x", field="note", category="C")]).category is None


def test_tags_merge_in_insertion_order_without_touching_category():
    tx = _tx(category="Entertainment", tags=("tv", "family"))
    out = apply_rules(tx, [_rule("netflix", tags=("family", "subscription"))])
    assert out.tags == ("tv", "family", "subscription")
    assert out.category == "Entertainment"


def test_tags_are_capped():
    existing = tuple(f"t{i}" for i in range(18))
    assert len(merge_tags(existing, ["a", "b", "c", "d"])) == 20
    assert merge_tags(existing, ["a", "b", "c"])[-2:] == ("a", "b")


def test_no_match_returns_the_same_record():
    tx = _tx(description="Groceries")
    assert apply_rules(tx, [_rule("netflix", category="Subs")]) is tx
