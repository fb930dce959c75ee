"""Pydantic request models for the seeq web API."""

from pydantic import BaseModel, Field


class QueryRequest(BaseModel):
    message: str = Field(..., min_length=1)


class ScreenRequest(BaseModel):
    """OCR text extracted from the user's current screen by the client."""

    text: str = Field(..., min_length=1)


class OpenFileRequest(BaseModel):
    path: str = Field(..., min_length=1)
