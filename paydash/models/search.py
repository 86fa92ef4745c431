"""
Keyword search result model.
"""

from typing import Any, Optional

from pydantic import BaseModel, Field

from .enums import SearchIntent


class SearchResult(BaseModel):
    """
    Outcome of routing a free-text query.

    ``matched_insight`` and ``data`` are None when no keyword matched;
    ``suggested_keywords`` is then populated to help the caller rephrase.
    """

    query: str
    matched_insight: Optional[SearchIntent] = None
    title: str
    description: str
    data: Optional[dict[str, Any]] = None
    suggested_keywords: list[str] = Field(default_factory=list)
