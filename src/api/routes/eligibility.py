"""
Eligibility API Endpoints.

Provides:
- X12 271 decoding (single and batch)
- Real-time eligibility verification through the CORE II gateway
"""

from fastapi import APIRouter, Depends, HTTPException, status

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
from src.services.edi.eligibility_service import (
    EligibilityCheckStatus,
    EligibilityErrorCode,
    EligibilityService,
    get_eligibility_service,
)
from src.services.edi.x12_base import X12ParseError
from src.utils.logging import get_logger

logger = get_logger(__name__)

router = APIRouter(
    prefix="/api/v1/eligibility",
    tags=["eligibility"],
)

# Failed checks map to the status of the upstream problem
ERROR_STATUS_CODES = {
    EligibilityErrorCode.AUTHENTICATION_FAILED: status.HTTP_401_UNAUTHORIZED,
    EligibilityErrorCode.TIMEOUT: status.HTTP_504_GATEWAY_TIMEOUT,
    EligibilityErrorCode.GATEWAY_UNAVAILABLE: status.HTTP_502_BAD_GATEWAY,
    EligibilityErrorCode.SOAP_FAULT: status.HTTP_502_BAD_GATEWAY,
    EligibilityErrorCode.CORE_ERROR: status.HTTP_502_BAD_GATEWAY,
    EligibilityErrorCode.EMPTY_PAYLOAD: status.HTTP_502_BAD_GATEWAY,
    EligibilityErrorCode.DECODE_FAILED: status.HTTP_422_UNPROCESSABLE_ENTITY,
}


def get_service() -> EligibilityService:
    """Dependency returning the shared eligibility service."""
    return get_eligibility_service()


def decode_error(error: X12ParseError) -> DecodeErrorSchema:
    return DecodeErrorSchema(
        message=error.message,
        segment_id=error.segment_id,
        segment_position=error.segment_position,
    )


# =============================================================================
# Endpoints
# =============================================================================


@router.post("/decode", response_model=EligibilityResponseSchema)
def decode_271(
    request: DecodeRequest,
    service: EligibilityService = Depends(get_service),
) -> EligibilityResponseSchema:
    """
    Decode an X12 271 eligibility response.

    Returns:
        Subscriber, dependent and patient with their benefits.
    """
    try:
        response = service.decode(request.x12)
    except X12ParseError as e:
        logger.info(f"271 decode rejected: {type(e).__name__}")
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail=decode_error(e).model_dump(),
        )

    return EligibilityResponseSchema.model_validate(response)


@router.post("/decode/batch", response_model=DecodeBatchResponse)
def decode_271_batch(
    request: DecodeBatchRequest,
    service: EligibilityService = Depends(get_service),
) -> DecodeBatchResponse:
    """
    Decode several X12 271 documents in parallel.

    Returns:
        One item per document, in request order.
    """
    items = []
    for index, outcome in enumerate(service.decode_batch(request.documents)):
        if isinstance(outcome, X12ParseError):
            items.append(DecodeBatchItem(index=index, error=decode_error(outcome)))
        else:
            items.append(
                DecodeBatchItem(
                    index=index,
                    response=EligibilityResponseSchema.model_validate(outcome),
                )
            )

    error_count = sum(1 for item in items if item.error is not None)
    return DecodeBatchResponse(
        total=len(items),
        decoded_count=len(items) - error_count,
        error_count=error_count,
        items=items,
    )


@router.post("/check", response_model=EligibilityCheckResponse)
async def check_eligibility(
    request: EligibilityCheckRequest,
    service: EligibilityService = Depends(get_service),
) -> EligibilityCheckResponse:
    """
    Verify eligibility in real time.

    Sends the X12 270 payload to the clearinghouse and decodes the 271 answer.

    Returns:
        Check result with the decoded response.
    """
    result = await service.check_eligibility(request.payload, payload_id=request.payload_id)
    response = EligibilityCheckResponse.model_validate(result)

    if result.status == EligibilityCheckStatus.FAILED:
        status_code = ERROR_STATUS_CODES.get(result.error_code, status.HTTP_502_BAD_GATEWAY)
        logger.warning(f"Eligibility check {result.check_id} failed: {result.error_code}")
        raise HTTPException(
            status_code=status_code,
            detail=response.model_dump(mode="json"),
        )

    return response
