"""Verification result models."""

from pydantic import BaseModel, Field


class VerifyResult(BaseModel):
    """Outcome of running the repository's verification command."""

    success: bool = Field(description="Whether verification passed (or nothing to run)")
    output: str = Field(default="", description="Combined stdout and stderr")
    errors: list[str] = Field(default_factory=list, description="Extracted error lines")
    duration: int = Field(default=0, description="Run time in ms")
    command: str | None = Field(default=None, description="Command that was run")
