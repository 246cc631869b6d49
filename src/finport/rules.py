"""Rule matching: assign categories from user-defined ordered patterns.

A rule pattern is either a literal, matched as a case-insensitive substring,
or a regular expression written as ``regex:/<body>/<flags>``.

Rules are evaluated in the order supplied and the first match wins. Callers
are expected to pass rules sorted by ascending priority (``sort_rules``).
Merchant rules test the merchant display name only.
"""

import re
from collections.abc import Callable, Iterable, Sequence
from dataclasses import dataclass

from finport.exceptions import InvalidRuleError
from finport.logging_setup import get_logger
from finport.models import CandidateTransaction, Rule, RuleField, RuleMatch, RuleOutcome

_logger = get_logger("finport.rules")

REGEX_PATTERN = re.compile(r"^regex:/(?P<body>.*)/(?P<flags>[a-z]*)$", re.DOTALL)

_FLAG_MAP = {
    "i": re.IGNORECASE,
    "m": re.MULTILINE,
    "s": re.DOTALL,
    # Stateless search, so global/sticky/unicode/indices have no effect
    "g": 0,
    "u": 0,
    "y": 0,
    "d": 0,
}

Matcher = Callable[[str], bool]


def _regex_flags(flags: str) -> int:
    value = 0
    for flag in flags:
        if flag not in _FLAG_MAP:
            raise InvalidRuleError(f"Unsupported regex flag: {flag!r}")
        value |= _FLAG_MAP[flag]
    return value


def is_regex_pattern(pattern: str) -> bool:
    """Return True if ``pattern`` uses the ``regex:/.../flags`` form."""
    return REGEX_PATTERN.match(pattern.strip()) is not None


def make_matcher(pattern: str) -> Matcher:
    """
    Build a text predicate from a rule pattern.

    Raises:
        InvalidRuleError: If a regex pattern does not compile
    """
    p = pattern.strip()
    m = REGEX_PATTERN.match(p)
    if m:
        try:
            compiled = re.compile(m.group("body"), _regex_flags(m.group("flags")))
        except re.error as e:
            raise InvalidRuleError(f"Invalid regex in pattern {pattern!r}: {e}") from e
        return lambda s: compiled.search(s or "") is not None

    needle = p.lower()
    if not needle:
        return lambda s: False
    return lambda s: needle in (s or "").lower()


def format_amount(candidate: CandidateTransaction) -> str:
    """Render the amount the way amount rules see it."""
    return f"{candidate.amount:.2f}"


@dataclass(frozen=True)
class CompiledRule:
    """A rule with its pattern compiled into a matcher."""

    rule: Rule
    field: RuleField
    matcher: Matcher

    def field_text(self, candidate: CandidateTransaction) -> str:
        """Return the candidate text this rule's field selects."""
        if self.field is RuleField.MERCHANT:
            return candidate.merchant_name or ""
        if self.field is RuleField.DESCRIPTION:
            return candidate.description or ""
        return format_amount(candidate)

    def matches(self, candidate: CandidateTransaction) -> bool:
        """Test the rule against a candidate transaction."""
        return self.matcher(self.field_text(candidate))

    def reason(self) -> str:
        """Human-readable explanation of a match."""
        return f'pattern "{self.rule.pattern}" matched {self.field.value}'


def compile_rule(rule: Rule) -> CompiledRule:
    """
    Compile a rule's pattern.

    Raises:
        InvalidRuleError: If the field is unknown or the pattern does not compile
    """
    try:
        field = RuleField(rule.field)
    except ValueError as e:
        raise InvalidRuleError(f"Unknown rule field: {rule.field!r}") from e
    return CompiledRule(rule=rule, field=field, matcher=make_matcher(rule.pattern))


def sort_rules(rules: Iterable[Rule]) -> list[Rule]:
    """Return rules in evaluation order (ascending priority, stable)."""
    return sorted(rules, key=lambda r: r.priority)


def _compile_all(rules: Sequence[Rule | CompiledRule]) -> list[CompiledRule]:
    return [r if isinstance(r, CompiledRule) else compile_rule(r) for r in rules]


def _first_match(
    candidate: CandidateTransaction, compiled: Sequence[CompiledRule]
) -> RuleMatch | None:
    for c in compiled:
        if c.matches(candidate):
            return RuleMatch(
                rule_id=c.rule.id,
                category_id=c.rule.category_id,
                reason=c.reason(),
            )
    return None


def apply_rules_to_transaction(
    candidate: CandidateTransaction, rules: Sequence[Rule | CompiledRule]
) -> RuleMatch | None:
    """
    Return the first rule matching ``candidate``, in the order given.

    Args:
        candidate: Transaction projection to test
        rules: Rules sorted by ascending priority

    Returns:
        RuleMatch for the winning rule, or None when nothing matched
    """
    return _first_match(candidate, _compile_all(rules))


def apply_rules_to_batch(
    rules: Sequence[Rule | CompiledRule],
    candidates: Sequence[CandidateTransaction],
    default_category_id: str | None,
) -> list[RuleOutcome]:
    """
    Evaluate every candidate, returning one outcome per input in input order.

    ``default_category_id`` is used when no rule matches or the matching
    rule has no category.
    """
    compiled = _compile_all(rules)
    outcomes: list[RuleOutcome] = []
    for candidate in candidates:
        match = _first_match(candidate, compiled)
        if match is None:
            outcomes.append(
                RuleOutcome(transaction_id=candidate.id, category_id=default_category_id)
            )
            continue
        outcomes.append(
            RuleOutcome(
                transaction_id=candidate.id,
                category_id=match.category_id or default_category_id,
                rule_id=match.rule_id,
                reason=match.reason,
            )
        )

    matched = sum(1 for o in outcomes if o.rule_id is not None)
    _logger.debug("Evaluated %d transactions, %d matched a rule", len(outcomes), matched)
    return outcomes
