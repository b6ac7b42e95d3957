"""
Eligibility Verification Service.

Orchestrates real-time X12 270/271 eligibility verification:
- Send the caller's 270 request through the CORE II gateway
- Decode the 271 response into an EligibilityResponse
- Decode batches of 271 documents in parallel worker threads
"""

from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import List, Optional, Sequence, Union
from uuid import uuid4
import time

from src.core.config import EligibilitySettings, get_eligibility_settings
from src.gateways.base import (
    GatewayError,
    ProviderAuthenticationError,
    ProviderTimeoutError,
)
from src.gateways.core2_gateway import Core2FaultError, Core2Gateway
from src.services.edi.x12_base import X12ParseError
from src.services.edi.x12_271_models import EligibilityResponse
from src.services.edi.x12_271_parser import X12271Parser
from src.utils.logging import get_logger

logger = get_logger(__name__)


# =============================================================================
# Enums and Models
# =============================================================================


class EligibilityCheckStatus(str, Enum):
    """Status of eligibility check."""
    COMPLETED = "completed"
    FAILED = "failed"


class EligibilityErrorCode(str, Enum):
    """Why an eligibility check failed."""
    AUTHENTICATION_FAILED = "authentication_failed"
    TIMEOUT = "timeout"
    GATEWAY_UNAVAILABLE = "gateway_unavailable"
    SOAP_FAULT = "soap_fault"
    CORE_ERROR = "core_error"
    EMPTY_PAYLOAD = "empty_payload"
    DECODE_FAILED = "decode_failed"


@dataclass
class EligibilityCheckResult:
    """Result of eligibility verification."""
    check_id: str
    status: EligibilityCheckStatus

    # Decoded 271
    response: Optional[EligibilityResponse] = None
    payload_id: Optional[str] = None

    # Errors
    error_code: Optional[EligibilityErrorCode] = None
    errors: List[str] = field(default_factory=list)

    # Metadata
    checked_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    processing_time_ms: int = 0

    @property
    def is_eligible(self) -> bool:
        return self.response is not None and self.response.is_active


DecodeOutcome = Union[EligibilityResponse, X12ParseError]


# =============================================================================
# Service
# =============================================================================


class EligibilityService:
    """
    Eligibility Verification Service.

    Usage:
        service = EligibilityService()
        result = await service.check_eligibility(x12_270)
        if result.is_eligible:
            print(result.response.patient.name.last)

        responses = service.decode_batch([x12_271_a, x12_271_b])
    """

    def __init__(
        self,
        gateway: Optional[Core2Gateway] = None,
        parser: Optional[X12271Parser] = None,
        settings: Optional[EligibilitySettings] = None,
    ):
        """
        Initialize eligibility service.

        Args:
            gateway: CORE II gateway (built from settings when omitted)
            parser: 271 parser; shared across worker threads
            settings: Eligibility settings (defaults to the environment settings)
        """
        self.settings = settings or get_eligibility_settings()
        self.gateway = gateway or Core2Gateway(self.settings)
        self.parser = parser or X12271Parser()

    async def check_eligibility(
        self, payload: str, payload_id: Optional[str] = None
    ) -> EligibilityCheckResult:
        """
        Send a 270 request and decode the 271 answer.

        Gateway and decode failures are returned as FAILED results.
        """
        start_time = time.perf_counter()
        check_id = str(uuid4())
        logger.info(f"Eligibility check {check_id}: starting")

        try:
            core = await self.gateway.check_eligibility(payload, payload_id=payload_id)
        except GatewayError as e:
            logger.warning(f"Eligibility check {check_id}: gateway error {type(e).__name__}")
            return self._failed(check_id, start_time, self._gateway_error_code(e), str(e))

        if not core.success:
            return self._failed(
                check_id,
                start_time,
                EligibilityErrorCode.CORE_ERROR,
                f"CORE error {core.error_code}: {core.error_message or 'no message'}",
                payload_id=core.payload_id,
            )

        if not core.payload or not core.payload.strip():
            return self._failed(
                check_id,
                start_time,
                EligibilityErrorCode.EMPTY_PAYLOAD,
                "CORE response has no 271 payload",
                payload_id=core.payload_id,
            )

        try:
            response = self.decode(core.payload)
        except X12ParseError as e:
            logger.warning(f"Eligibility check {check_id}: 271 decode failed ({type(e).__name__})")
            return self._failed(
                check_id,
                start_time,
                EligibilityErrorCode.DECODE_FAILED,
                e.message,
                payload_id=core.payload_id,
            )

        result = EligibilityCheckResult(
            check_id=check_id,
            status=EligibilityCheckStatus.COMPLETED,
            response=response,
            payload_id=core.payload_id,
            processing_time_ms=self._elapsed_ms(start_time),
        )
        logger.info(
            f"Eligibility check {check_id}: completed - "
            f"eligible={result.is_eligible}, benefits={len(response.patient.benefits)}"
        )
        return result

    def decode(self, text: str) -> EligibilityResponse:
        """Decode one 271 document."""
        return self.parser.parse(text)

    def decode_batch(
        self, texts: Sequence[str], max_workers: Optional[int] = None
    ) -> List[DecodeOutcome]:
        """
        Decode independent 271 documents in parallel.

        Results keep the input order; a document that fails to decode yields
        its X12ParseError in place of a response.
        """
        if not texts:
            return []

        workers = min(max_workers or self.settings.DECODE_WORKERS, len(texts))
        with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="x12-decode") as pool:
            outcomes = list(pool.map(self._decode_safely, texts))

        failed = sum(1 for o in outcomes if isinstance(o, X12ParseError))
        logger.info(f"Decoded batch of {len(texts)} documents ({failed} failed) with {workers} workers")
        return outcomes

    def _decode_safely(self, text: str) -> DecodeOutcome:
        try:
            return self.decode(text)
        except X12ParseError as e:
            return e

    # =========================================================================
    # Helpers
    # =========================================================================

    def _gateway_error_code(self, error: GatewayError) -> EligibilityErrorCode:
        if isinstance(error, ProviderAuthenticationError):
            return EligibilityErrorCode.AUTHENTICATION_FAILED
        if isinstance(error, ProviderTimeoutError):
            return EligibilityErrorCode.TIMEOUT
        if isinstance(error, Core2FaultError):
            return EligibilityErrorCode.SOAP_FAULT
        return EligibilityErrorCode.GATEWAY_UNAVAILABLE

    def _failed(
        self,
        check_id: str,
        start_time: float,
        error_code: EligibilityErrorCode,
        message: str,
        payload_id: Optional[str] = None,
    ) -> EligibilityCheckResult:
        return EligibilityCheckResult(
            check_id=check_id,
            status=EligibilityCheckStatus.FAILED,
            payload_id=payload_id,
            error_code=error_code,
            errors=[message],
            processing_time_ms=self._elapsed_ms(start_time),
        )

    def _elapsed_ms(self, start_time: float) -> int:
        return int((time.perf_counter() - start_time) * 1000)


# =============================================================================
# Factory
# =============================================================================

_eligibility_service: Optional[EligibilityService] = None


def get_eligibility_service(
    gateway: Optional[Core2Gateway] = None,
) -> EligibilityService:
    """
    Get or create eligibility service instance.

    Args:
        gateway: CORE II gateway used when the instance is first created

    Returns:
        EligibilityService instance
    """
    global _eligibility_service

    if _eligibility_service is None:
        _eligibility_service = EligibilityService(gateway=gateway)

    return _eligibility_service
