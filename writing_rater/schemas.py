"""
Pydantic request/response models.

Rationale:
- Define simple, explicit input/output contracts for the API.
- The model's per-criterion output is passed through as a dict; only
  `overall` and `writing_info` presence is checked (normalizer.py).
"""

from typing import List

from pydantic import BaseModel, ConfigDict, Field


class AnalysisRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    text: str
    writing_type: str = Field(alias="writingType")
    criteria: List[str]


class AnalysisMeta(BaseModel):
    processed_at: str
    version: str
    service: str


class ErrorResponse(BaseModel):
    error: str
    code: str


class HealthResponse(BaseModel):
    status: str
    timestamp: str
    version: str
    service: str
    environment: str
    api_key_configured: bool
