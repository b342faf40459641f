"""Host-suffix to tag resolution for newly added pages."""

from __future__ import annotations

from typing import Iterable, List, Sequence, Tuple, Union

from .models import TagRule

RuleLike = Union[TagRule, Tuple[str, str]]


def _as_rule(rule: RuleLike) -> TagRule:
    if isinstance(rule, TagRule):
        return rule
    host_suffix, tag = rule
    return TagRule(host_suffix=host_suffix, tag=tag)


class TagResolver:
    """Resolves a host name to a predefined tag.

    Rules are tried longest suffix first; rules with suffixes of equal length
    keep the order they were given in, so the earlier one wins.
    """

    def __init__(self, rules: Iterable[RuleLike] = ()) -> None:
        ordered = [_as_rule(r) for r in rules]
        # sorted() is stable: equal lengths stay in load order.
        self._rules: List[TagRule] = sorted(
            ordered, key=lambda r: len(r.host_suffix), reverse=True
        )

    @property
    def rules(self) -> Sequence[TagRule]:
        return tuple(self._rules)

    def __len__(self) -> int:
        return len(self._rules)

    def resolve(self, host: str) -> str:
        """Return the tag of the best matching rule, or '' when none matches."""
        host = (host or "").lower()
        if not host:
            return ""
        for rule in self._rules:
            if rule.host_suffix and host.endswith(rule.host_suffix.lower()):
                return rule.tag
        return ""
