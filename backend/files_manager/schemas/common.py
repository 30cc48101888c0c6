"""Shared Pydantic schemas."""
from pydantic import BaseModel


class ErrorResponse(BaseModel):
    error: str


class StatusResponse(BaseModel):
    db: bool
    redis: bool


class StatsResponse(BaseModel):
    users: int
    files: int
