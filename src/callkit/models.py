"""Typed metadata handed to observers for every physical request."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field


class CallkitModel(BaseModel):
    model_config = ConfigDict(extra="ignore", frozen=True)


class RequestInfo(CallkitModel):
    method: str
    url: str
    headers: dict[str, str] = Field(default_factory=dict)
    attempt: int = 1
    hop: int = 0
    started_at: datetime


class ResponseInfo(CallkitModel):
    status_code: int | None = None
    headers: dict[str, str] = Field(default_factory=dict)
    elapsed_seconds: float
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.error is None and self.status_code is not None and self.status_code < 300
