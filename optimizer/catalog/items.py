"""
Catalog item shapes as seen by the optimizer
"""
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from optimizer.enums import Field


@dataclass
class ImageRef:
    id: str
    url: str
    alt_text: Optional[str] = None


@dataclass
class CatalogItem:
    id: str
    title: str
    description: str = ""
    vendor: str = ""
    price: Optional[str] = None
    tags: List[str] = field(default_factory=list)
    collections: List[str] = field(default_factory=list)
    seo_title: Optional[str] = None
    seo_description: Optional[str] = None
    images: List[ImageRef] = field(default_factory=list)

    @classmethod
    def from_payload(cls, data: Dict[str, Any]) -> "CatalogItem":
        seo = data.get("seo") or {}
        return cls(
            id=str(data["id"]),
            title=data.get("title") or "",
            description=data.get("description_html") or "",
            vendor=data.get("vendor") or "",
            price=data.get("price"),
            tags=list(data.get("tags") or []),
            collections=list(data.get("collections") or []),
            seo_title=seo.get("title"),
            seo_description=seo.get("description"),
            images=[
                ImageRef(id=str(img["id"]), url=img.get("url") or "", alt_text=img.get("alt_text"))
                for img in data.get("images") or []
            ],
        )

    def image(self, image_id: Optional[str]) -> Optional[ImageRef]:
        for img in self.images:
            if img.id == image_id:
                return img
        return None

    def field_value(self, field_name: Field, target_id: Optional[str] = None) -> Optional[str]:
        """Current remote value of a field; ALT_TEXT needs the image id."""
        if field_name == Field.TITLE:
            return self.seo_title
        if field_name == Field.DESCRIPTION:
            return self.seo_description
        img = self.image(target_id)
        return img.alt_text if img else None

    def images_missing_alt(self) -> List[ImageRef]:
        return [img for img in self.images if not (img.alt_text or "").strip()]

    def is_missing(self, field_name: Field) -> bool:
        if field_name == Field.ALT_TEXT:
            return bool(self.images_missing_alt())
        return not (self.field_value(field_name) or "").strip()


@dataclass
class CatalogPage:
    items: List[CatalogItem]
    next_cursor: Optional[str] = None
    has_more: bool = False
