"""
Tenant exclusion rules: items carrying a blocked tag or sitting in a blocked
collection are never touched by a job.
"""
from dataclasses import dataclass, field
from typing import FrozenSet, Iterable, List, Optional, Union

from ..catalog.items import CatalogItem


def parse_list(value: Union[None, str, Iterable[str]]) -> List[str]:
    """Accept a list or a comma separated string; drop blanks and duplicates."""
    if value is None:
        return []
    if isinstance(value, str):
        parts = value.split(",")
    else:
        parts = list(value)
    seen = []
    for part in parts:
        p = str(part).strip()
        if p and p not in seen:
            seen.append(p)
    return seen


def _norm(value: str) -> str:
    return value.strip().lower()


@dataclass(frozen=True)
class ExclusionRules:
    tags: FrozenSet[str] = field(default_factory=frozenset)
    collections: FrozenSet[str] = field(default_factory=frozenset)

    @classmethod
    def build(cls, tags: Optional[Iterable[str]] = None,
              collections: Optional[Iterable[str]] = None) -> "ExclusionRules":
        return cls(
            tags=frozenset(_norm(t) for t in parse_list(tags)),
            collections=frozenset(_norm(c) for c in parse_list(collections)),
        )

    @classmethod
    def for_tenant(cls, tenant) -> "ExclusionRules":
        return cls.build(tenant.excluded_tags or [], tenant.excluded_collections or [])

    def __bool__(self) -> bool:
        return bool(self.tags or self.collections)


def is_excluded(item: CatalogItem, rules: ExclusionRules) -> bool:
    if not rules:
        return False
    if any(_norm(tag) in rules.tags for tag in item.tags):
        return True
    return any(_norm(c) in rules.collections for c in item.collections)


def keep(item: CatalogItem, rules: ExclusionRules) -> bool:
    return not is_excluded(item, rules)
