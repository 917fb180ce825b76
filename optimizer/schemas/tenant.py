from typing import Dict, List, Optional, Union

from pydantic import BaseModel, Field, field_validator

from optimizer.enums import Field as CatalogField, Tone
from optimizer.services.exclusion import parse_list


class TenantSettings(BaseModel):
    tone: Tone
    excluded_tags: List[str]
    excluded_collections: List[str]
    custom_prompts: Dict[str, str]
    plan: str


class TenantSettingsUpdate(BaseModel):
    tone: Optional[Tone] = None
    excluded_tags: Optional[Union[List[str], str]] = Field(None, description="List or comma separated")
    excluded_collections: Optional[Union[List[str], str]] = Field(None, description="List or comma separated")
    custom_prompts: Optional[Dict[CatalogField, str]] = None

    @field_validator("excluded_tags", "excluded_collections")
    @classmethod
    def _split(cls, v):
        return None if v is None else parse_list(v)


class UsageOut(BaseModel):
    billing_period: str
    plan: str
    limit: Optional[int]
    counters: Dict[str, int]
    percent_used: float
