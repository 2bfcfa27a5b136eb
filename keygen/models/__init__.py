"""
Models module for the Snowflake key generator API.
"""

from keygen.models.snowflake import (
    IdResponse,
    IdBatchResponse,
    DecodedIdResponse,
    NodeResponse,
    HealthResponse,
    ErrorResponse
)
