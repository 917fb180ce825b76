"""
Closed value sets shared by models, services and API schemas
"""
from enum import Enum


class JobType(str, Enum):
    TITLE_DESC = "TITLE_DESC"
    ALT_TEXT = "ALT_TEXT"
    SCHEMA = "SCHEMA"


class JobStatus(str, Enum):
    PENDING = "PENDING"
    PROCESSING = "PROCESSING"
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"


ACTIVE_STATUSES = (JobStatus.PENDING.value, JobStatus.PROCESSING.value)


class Field(str, Enum):
    """Catalog fields a job may rewrite."""
    TITLE = "TITLE"
    DESCRIPTION = "DESCRIPTION"
    ALT_TEXT = "ALT_TEXT"


class Tone(str, Enum):
    PROFESSIONAL = "PROFESSIONAL"
    FUN = "FUN"
    URGENT = "URGENT"
    LUXURY = "LUXURY"


class CounterKind(str, Enum):
    """Monthly usage counters tracked per tenant."""
    PRODUCTS_OPTIMIZED = "products_optimized"
    META_TITLES_GENERATED = "meta_titles_generated"
    META_DESCRIPTIONS_GENERATED = "meta_descriptions_generated"
    ALT_TEXTS_GENERATED = "alt_texts_generated"
    SCHEMAS_GENERATED = "schemas_generated"
