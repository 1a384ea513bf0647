"""
Input validation for ingestion items.
"""

import math
from typing import Any, List, Optional, Union
from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator


class IngestItem(BaseModel):
    model_config = ConfigDict(extra="ignore")

    text: str
    published_at: int = Field(validation_alias=AliasChoices("published_at", "publishedAt"))
    source: str
    url: str = ""
    tags: Optional[List[str]] = None

    @field_validator('published_at', mode='before')
    @classmethod
    def truncate_float_timestamp(cls, v):
        # Millisecond clocks such as time.time() * 1000 produce floats
        if isinstance(v, float) and math.isfinite(v):
            return int(v)
        return v

    @field_validator('url', mode='before')
    @classmethod
    def url_none_is_empty(cls, v):
        return "" if v is None else v

    @field_validator('tags')
    @classmethod
    def empty_tags_are_absent(cls, v):
        if not v:
            return None
        return v


def coerce_item(item: Union[IngestItem, dict, Any]) -> IngestItem:
    """Validate a dict (or pass through an IngestItem). Raises pydantic.ValidationError."""
    if isinstance(item, IngestItem):
        return item
    return IngestItem.model_validate(item)
