"""
Mutation applier: turns field changes into catalog writes without clobbering
fields the change does not touch.

The catalog replaces a field group as a whole. TITLE and DESCRIPTION form the
`seo` group, so a write to one always carries the other's current value. Each
image's alt text is its own group keyed by image id.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence

from ..catalog.base import CatalogSource
from ..catalog.errors import CatalogAuthError, CatalogError
from ..catalog.items import CatalogItem
from ..enums import Field
from .ratelimit import RateLimiter

logger = logging.getLogger(__name__)

SEO_GROUP = (Field.TITLE, Field.DESCRIPTION)


@dataclass(frozen=True)
class FieldChange:
    field: Field
    value: str
    target_id: Optional[str] = None  # image id for ALT_TEXT


@dataclass(frozen=True)
class AppliedChange:
    field: Field
    old_value: str
    new_value: str
    target_id: Optional[str] = None


@dataclass
class ApplyResult:
    ok: bool
    changes: List[AppliedChange] = field(default_factory=list)
    error: Optional[str] = None


def _or_none(value: Optional[str]) -> Optional[str]:
    # empty means absent on the remote side
    return value if value else None


def build_field_set(current: CatalogItem, changes: Sequence[FieldChange]) -> Dict[str, Any]:
    """Merge changes with the current item into whole-group writes."""
    field_set: Dict[str, Any] = {}

    seo = {c.field: c.value for c in changes if c.field in SEO_GROUP}
    if seo:
        field_set["seo"] = {
            "title": _or_none(seo.get(Field.TITLE, current.seo_title)),
            "description": _or_none(seo.get(Field.DESCRIPTION, current.seo_description)),
        }

    images = [c for c in changes if c.field == Field.ALT_TEXT]
    if images:
        for c in images:
            if current.image(c.target_id) is None:
                raise ValueError(f"Image {c.target_id} not found on item {current.id}")
        field_set["images"] = [{"id": c.target_id, "alt_text": _or_none(c.value)} for c in images]

    return field_set


class MutationApplier:
    def __init__(self, rate_limiter: Optional[RateLimiter] = None):
        self.rate_limiter = rate_limiter

    async def apply(self, catalog: CatalogSource, item_id: str, changes: Sequence[FieldChange],
                    current: Optional[CatalogItem] = None) -> ApplyResult:
        """
        Write `changes` to one item.

        `current` is the item state the sibling values are carried from; when
        omitted the item is re-read first. Auth failures propagate, every other
        catalog failure is reported through the result.
        """
        if not changes:
            return ApplyResult(ok=True)
        try:
            if current is None:
                current = await catalog.get_item(item_id)
            field_set = build_field_set(current, changes)
            if self.rate_limiter is not None:
                await self.rate_limiter.acquire()
            await catalog.mutate(item_id, field_set)
        except CatalogAuthError:
            raise
        except (CatalogError, ValueError) as e:
            logger.warning("Mutation failed for item %s: %s", item_id, e, extra={
                "component": "applier",
                "item_id": item_id
            })
            return ApplyResult(ok=False, error=str(e))

        applied = [
            AppliedChange(
                field=c.field,
                old_value=current.field_value(c.field, c.target_id) or "",
                new_value=c.value,
                target_id=c.target_id,
            )
            for c in changes
        ]
        return ApplyResult(ok=True, changes=applied)
