#!/usr/bin/env python3
"""
Response models for the Snowflake key generator API.

Ids are rendered as strings so JSON consumers limited to 53-bit
integers read them without loss.
"""

from typing import List, Dict, Any, Optional
from datetime import datetime
from pydantic import BaseModel, Field, model_validator

from keygen.core.config import localize_datetime


class IdResponse(BaseModel):
    """Newly issued id with its decoded fields."""

    id: str = Field(..., description="Snowflake ID as a decimal string")
    timestamp: int = Field(..., description="Milliseconds since the custom epoch")
    node_id: int
    sequence: int


class IdBatchResponse(BaseModel):
    """Batch of newly issued ids, in issue order."""

    ids: List[str]
    count: int


class DecodedIdResponse(BaseModel):
    """Fields decoded from an existing id."""

    id: str
    timestamp: int
    node_id: int
    sequence: int
    created_at: datetime

    @model_validator(mode='after')
    def localize_created_at(self):
        """Render created_at in the configured timezone."""
        self.created_at = localize_datetime(self.created_at)
        return self


class NodeResponse(BaseModel):
    """Identity and state of this node's generator."""

    node_id: int
    epoch: int
    last_timestamp: Optional[int] = None
    sequence: int


class HealthResponse(BaseModel):
    """Liveness response model."""

    status: str
    version: str


class ErrorResponse(BaseModel):
    """Error response model."""

    error: Dict[str, Any]
