"""
Pydantic Schemas for Eligibility Decoding.

Provides request/response models for the eligibility API:
- 271 decode (single and batch)
- Real-time 270/271 check
"""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from src.services.edi.eligibility_service import (
    EligibilityCheckStatus,
    EligibilityErrorCode,
)


# =============================================================================
# Requests
# =============================================================================


class DecodeRequest(BaseModel):
    """Request schema for decoding a 271 document."""

    x12: str = Field(..., min_length=1, description="Raw X12 271 content")


class DecodeBatchRequest(BaseModel):
    """Request schema for decoding several 271 documents."""

    documents: list[str] = Field(
        ...,
        min_length=1,
        max_length=100,
        description="Raw X12 271 documents (max 100)",
    )


class EligibilityCheckRequest(BaseModel):
    """Request schema for a real-time eligibility check."""

    payload: str = Field(..., min_length=1, description="Raw X12 270 request, sent verbatim")
    payload_id: Optional[str] = Field(
        None,
        max_length=64,
        description="CORE PayloadID (generated when omitted)",
    )


# =============================================================================
# Decoded 271
# =============================================================================


class NameSchema(BaseModel):
    """Name and address of an insured party."""

    model_config = ConfigDict(from_attributes=True)

    first: Optional[str] = None
    middle: Optional[str] = None
    last: Optional[str] = None
    suffix: Optional[str] = None
    address: Optional[str] = None
    address_2: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None
    zip: Optional[str] = None


class BenefitDateSchema(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    qualifier_code: Optional[str] = None
    qualifier: Optional[str] = None
    format_qualifier: Optional[str] = None
    value: Optional[str] = None


class BenefitSchema(BaseModel):
    """Eligibility or benefit information."""

    model_config = ConfigDict(from_attributes=True)

    info: Optional[str] = None
    info_code: Optional[str] = None
    active_coverage: bool = False
    co_insurance: bool = False
    coverage_level: Optional[str] = None
    service_type: Optional[str] = None
    service_type_codes: list[str] = Field(default_factory=list)
    insurance_type: Optional[str] = None
    insurance_type_code: Optional[str] = None
    plan_coverage_description: Optional[str] = None
    time_period: Optional[str] = None
    monetary_amount: Optional[str] = None
    percent: Optional[str] = None
    quantity: Optional[str] = None
    yes_no_response_code: Optional[str] = None
    plan_network_indicator: Optional[str] = None
    date_qualifier: Optional[str] = None
    date_of_service: Optional[str] = None
    messages: list[str] = Field(default_factory=list)
    dates: list[BenefitDateSchema] = Field(default_factory=list)
    references: list[tuple[Optional[str], Optional[str]]] = Field(default_factory=list)

    @field_validator("service_type_codes", mode="before")
    @classmethod
    def sort_codes(cls, v):
        """Service type codes are a set; emit them in a stable order."""
        return sorted(v) if isinstance(v, (set, frozenset)) else v


class PartySchema(BaseModel):
    """Subscriber or dependent."""

    model_config = ConfigDict(from_attributes=True)

    name: NameSchema
    member_id: Optional[str] = None
    date_of_birth: Optional[str] = None
    gender: Optional[str] = None
    has_active_coverage: bool = False
    references: list[tuple[Optional[str], Optional[str]]] = Field(default_factory=list)
    benefits: list[BenefitSchema] = Field(default_factory=list)


class RejectionSchema(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    valid: bool
    reject_reason_code: Optional[str] = None
    reject_reason: Optional[str] = None
    follow_up_action_code: Optional[str] = None


class DecodeWarningSchema(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    message: str
    position: int
    raw_segment: Optional[str] = None


class EligibilityResponseSchema(BaseModel):
    """Decoded 271 eligibility response."""

    model_config = ConfigDict(from_attributes=True)

    subscriber: PartySchema
    dependent: Optional[PartySchema] = None
    patient: PartySchema
    patient_is_dependent: bool = False
    is_active: bool = False
    is_rejected: bool = False
    payer_name: Optional[str] = None
    receiver_name: Optional[str] = None
    trace_number: Optional[str] = None
    control_number: Optional[str] = None
    rejections: list[RejectionSchema] = Field(default_factory=list)
    warnings: list[DecodeWarningSchema] = Field(default_factory=list)


class DecodeErrorSchema(BaseModel):
    """Why a 271 document could not be decoded."""

    message: str
    segment_id: Optional[str] = None
    segment_position: Optional[int] = None


class DecodeBatchItem(BaseModel):
    index: int
    response: Optional[EligibilityResponseSchema] = None
    error: Optional[DecodeErrorSchema] = None


class DecodeBatchResponse(BaseModel):
    """Response schema for batch decoding; items keep the request order."""

    total: int
    decoded_count: int
    error_count: int
    items: list[DecodeBatchItem]


# =============================================================================
# Real-time check
# =============================================================================


class EligibilityCheckResponse(BaseModel):
    """Response schema for a real-time eligibility check."""

    model_config = ConfigDict(from_attributes=True)

    check_id: str
    status: EligibilityCheckStatus
    is_eligible: bool = False
    payload_id: Optional[str] = None
    error_code: Optional[EligibilityErrorCode] = None
    errors: list[str] = Field(default_factory=list)
    response: Optional[EligibilityResponseSchema] = None
    checked_at: datetime
    processing_time_ms: int = 0
