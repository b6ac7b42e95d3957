"""
Pydantic Schemas for the Eligibility API.

This module exports all request/response schemas for the API.
"""

from src.schemas.eligibility import (
    DecodeBatchItem,
    DecodeBatchRequest,
    DecodeBatchResponse,
    DecodeErrorSchema,
    DecodeRequest,
    EligibilityCheckRequest,
    EligibilityCheckResponse,
    EligibilityResponseSchema,
)

__all__ = [
    "DecodeBatchItem",
    "DecodeBatchRequest",
    "DecodeBatchResponse",
    "DecodeErrorSchema",
    "DecodeRequest",
    "EligibilityCheckRequest",
    "EligibilityCheckResponse",
    "EligibilityResponseSchema",
]
