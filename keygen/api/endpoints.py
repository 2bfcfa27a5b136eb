#!/usr/bin/env python3
"""
API endpoints for the Snowflake key generator.
"""

from fastapi import APIRouter, Depends, HTTPException, Query, Request
from starlette.status import HTTP_201_CREATED, HTTP_400_BAD_REQUEST, HTTP_422_UNPROCESSABLE_ENTITY, HTTP_503_SERVICE_UNAVAILABLE
from loguru import logger

from keygen import __version__
from keygen.core.config import get_settings, get_timezone
from keygen.core.const import UNSET_TIMESTAMP
from keygen.core.snowflake import SnowflakeGenerator, decompose_id, get_generator, to_datetime
from keygen.models import DecodedIdResponse, ErrorResponse, HealthResponse, IdBatchResponse, IdResponse, NodeResponse

# Error envelope for ids refused while the clock is behind
ISSUE_ERRORS = {HTTP_503_SERVICE_UNAVAILABLE: {"model": ErrorResponse, "description": "System clock moved backwards"}}


router = APIRouter(
    tags=["v1"]
)


@router.get("/health", response_model=HealthResponse, tags=["Health"])
async def health():
    """Liveness check."""
    return {"status": "ok", "version": __version__}


@router.post("/api/v1/ids", status_code=HTTP_201_CREATED, response_model=IdResponse, responses=ISSUE_ERRORS, tags=["Ids"])
def create_id(generator: SnowflakeGenerator = Depends(get_generator)):
    """
    Issue one new id.

    Args:
        generator: Snowflake generator

    Returns:
        The id and its fields
    """
    snowflake_id = generator.next_id()
    components = decompose_id(snowflake_id)

    return {
        "id": str(snowflake_id),
        "timestamp": components.timestamp,
        "node_id": components.node_id,
        "sequence": components.sequence
    }


@router.get("/api/v1/ids/batch", response_model=IdBatchResponse, responses=ISSUE_ERRORS, tags=["Ids"])
def create_id_batch(
    request: Request,
    count: int = Query(..., ge=1, description="Number of ids to issue"),
    generator: SnowflakeGenerator = Depends(get_generator)
):
    """
    Issue a batch of ids in issue order.

    Args:
        request: Request object
        count: Number of ids
        generator: Snowflake generator

    Returns:
        Batch response
    """
    max_batch_size = get_settings().max_batch_size
    if count > max_batch_size:
        raise HTTPException(
            status_code=HTTP_422_UNPROCESSABLE_ENTITY,
            detail=f"count must not exceed {max_batch_size}"
        )

    ids = [str(generator.next_id()) for _ in range(count)]

    trace_id = getattr(request.state, "trace_id", None)
    logger.info(f"Issued batch of {count} ids, trace_id: {trace_id}")

    return {"ids": ids, "count": count}


@router.get("/api/v1/ids/{snowflake_id}", response_model=DecodedIdResponse, tags=["Ids"])
def decode_id(snowflake_id: str, generator: SnowflakeGenerator = Depends(get_generator)):
    """
    Decode an existing id.

    Args:
        snowflake_id: Snowflake ID as a decimal string
        generator: Snowflake generator, whose epoch is used for created_at

    Returns:
        Decoded fields
    """
    try:
        # Plain decimal digits only; int() would also take "1_000" or " 12 "
        if not (snowflake_id.isascii() and snowflake_id.isdigit()):
            raise ValueError(snowflake_id)
        value = int(snowflake_id)
        components = decompose_id(value)
    except ValueError:
        raise HTTPException(
            status_code=HTTP_400_BAD_REQUEST,
            detail=f"Not a valid Snowflake ID: {snowflake_id}"
        )

    return {
        "id": str(value),
        "timestamp": components.timestamp,
        "node_id": components.node_id,
        "sequence": components.sequence,
        "created_at": to_datetime(value, epoch=generator.epoch, tz=get_timezone())
    }


@router.get("/api/v1/node", response_model=NodeResponse, tags=["Node"])
def get_node(generator: SnowflakeGenerator = Depends(get_generator)):
    """Identity and state of this node's generator."""
    last_timestamp = generator.last_timestamp
    return {
        "node_id": generator.node_id,
        "epoch": generator.epoch,
        "last_timestamp": None if last_timestamp == UNSET_TIMESTAMP else last_timestamp,
        "sequence": generator.sequence
    }
