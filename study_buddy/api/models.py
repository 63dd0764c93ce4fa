"""Request bodies for the HTTP API."""

from __future__ import annotations

from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field


class _CamelModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True)


class ChatBody(_CamelModel):
    message: str = ""
    subject: str = "Mathematics"
    year_level: Optional[int] = Field(None, alias="yearLevel")
    curriculum: Optional[str] = None
    user_id: str = Field("anonymous", alias="userId")
    selected_topics: List[str] = Field(default_factory=list, alias="selectedTopics")
    reset_context: bool = Field(False, alias="resetContext")


class ResetBody(_CamelModel):
    user_id: Optional[str] = Field(None, alias="userId")
    subject: Optional[str] = None
    year_level: Optional[int] = Field(None, alias="yearLevel")


class WorksheetBody(_CamelModel):
    topic: str = ""
    difficulty: str = "medium"
    question_count: int = Field(10, alias="questionCount")
    year_level: int = Field(7, alias="yearLevel")
    format: str = "txt"
