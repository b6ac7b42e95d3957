"""
Unit Tests for the Eligibility Verification Service.

Tests:
- Real-time check orchestration (gateway + decoder)
- Failure mapping for gateway and decode errors
- Parallel batch decoding
- Factory function
"""

from unittest.mock import AsyncMock, MagicMock

import pytest

from src.gateways.base import (
    ProviderAuthenticationError,
    ProviderTimeoutError,
    ProviderUnavailableError,
)
from src.gateways.core2_gateway import Core2FaultError, Core2Response
from src.services.edi.eligibility_service import (
    EligibilityCheckStatus,
    EligibilityErrorCode,
    EligibilityService,
    get_eligibility_service,
)
from src.services.edi.x12_base import MissingRequiredLoopError, X12ParseError
from src.services.edi.x12_271_models import EligibilityResponse
from tests.fixtures import (
    BCBS_MA_PATIENT_IS_DEPENDENT_AND_HAS_MEDICARE,
    DEPENDENT_WITHOUT_SUBSCRIBER,
    PAYER_REJECTED_NO_SUBSCRIBER,
    SUBSCRIBER_IS_PATIENT,
    SUBSCRIBER_NOT_FOUND,
)


X12_270 = "ST*270*0001*005010X279A1~SE*2*0001~"


def service_with(gateway_result, settings) -> EligibilityService:
    gateway = MagicMock()
    if isinstance(gateway_result, Exception):
        gateway.check_eligibility = AsyncMock(side_effect=gateway_result)
    else:
        gateway.check_eligibility = AsyncMock(return_value=gateway_result)
    return EligibilityService(gateway=gateway, settings=settings)


# =============================================================================
# Real-time check
# =============================================================================


class TestCheckEligibility:
    """Test check_eligibility orchestration."""

    @pytest.mark.asyncio
    async def test_check_eligibility_success(self, eligibility_settings):
        """Test a successful CORE response is decoded."""
        service = service_with(
            Core2Response(payload=BCBS_MA_PATIENT_IS_DEPENDENT_AND_HAS_MEDICARE, payload_id="p-1", error_code="Success"),
            eligibility_settings,
        )

        result = await service.check_eligibility(X12_270)

        assert result.status == EligibilityCheckStatus.COMPLETED
        assert result.is_eligible is True
        assert result.payload_id == "p-1"
        assert result.error_code is None
        assert result.errors == []
        assert result.response.patient is result.response.dependent
        assert result.processing_time_ms >= 0
        service.gateway.check_eligibility.assert_awaited_once_with(X12_270, payload_id=None)

    @pytest.mark.asyncio
    async def test_rejected_member_is_not_eligible(self, eligibility_settings):
        """Test an AAA rejection completes but is not eligible."""
        service = service_with(Core2Response(payload=SUBSCRIBER_NOT_FOUND), eligibility_settings)

        result = await service.check_eligibility(X12_270)

        assert result.status == EligibilityCheckStatus.COMPLETED
        assert result.is_eligible is False
        assert result.response.is_rejected is True

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "error,expected",
        [
            (ProviderAuthenticationError("denied"), EligibilityErrorCode.AUTHENTICATION_FAILED),
            (ProviderTimeoutError("slow"), EligibilityErrorCode.TIMEOUT),
            (ProviderUnavailableError("down"), EligibilityErrorCode.GATEWAY_UNAVAILABLE),
            (Core2FaultError("fault", fault_code="soap:Sender"), EligibilityErrorCode.SOAP_FAULT),
        ],
    )
    async def test_gateway_errors_become_failed_results(self, eligibility_settings, error, expected):
        """Test gateway exceptions are returned as FAILED results."""
        service = service_with(error, eligibility_settings)

        result = await service.check_eligibility(X12_270)

        assert result.status == EligibilityCheckStatus.FAILED
        assert result.error_code == expected
        assert result.errors == [str(error)]
        assert result.response is None
        assert result.is_eligible is False

    @pytest.mark.asyncio
    async def test_core_error_code(self, eligibility_settings):
        """Test a CORE error code fails the check."""
        service = service_with(
            Core2Response(error_code="PayloadTypeRequired", error_message="Payload Type Required"),
            eligibility_settings,
        )

        result = await service.check_eligibility(X12_270)

        assert result.status == EligibilityCheckStatus.FAILED
        assert result.error_code == EligibilityErrorCode.CORE_ERROR
        assert "PayloadTypeRequired" in result.errors[0]

    @pytest.mark.asyncio
    async def test_empty_payload(self, eligibility_settings):
        """Test a success response without a payload fails the check."""
        service = service_with(Core2Response(payload="  ", error_code="Success"), eligibility_settings)

        result = await service.check_eligibility(X12_270)

        assert result.error_code == EligibilityErrorCode.EMPTY_PAYLOAD

    @pytest.mark.asyncio
    async def test_decode_failure(self, eligibility_settings):
        """Test an undecodable 271 fails the check with the decode reason."""
        service = service_with(Core2Response(payload=DEPENDENT_WITHOUT_SUBSCRIBER), eligibility_settings)

        result = await service.check_eligibility(X12_270)

        assert result.status == EligibilityCheckStatus.FAILED
        assert result.error_code == EligibilityErrorCode.DECODE_FAILED
        assert result.errors == ["Dependent loop without an enclosing subscriber loop"]


# =============================================================================
# Decoding
# =============================================================================


class TestDecode:
    """Test direct and batch decoding."""

    @pytest.fixture
    def eligibility_service(self, eligibility_settings):
        """Create service with a gateway that must not be called."""
        return EligibilityService(gateway=MagicMock(), settings=eligibility_settings)

    def test_decode(self, eligibility_service):
        """Test decode returns a response."""
        response = eligibility_service.decode(SUBSCRIBER_IS_PATIENT)
        assert isinstance(response, EligibilityResponse)
        assert response.patient.name.last == "DOE"

    def test_decode_raises_on_failure(self, eligibility_service):
        """Test decode propagates parse errors."""
        with pytest.raises(MissingRequiredLoopError):
            eligibility_service.decode(PAYER_REJECTED_NO_SUBSCRIBER)

    def test_decode_batch_keeps_input_order(self, eligibility_service):
        """Test batch results follow the input order."""
        texts = [SUBSCRIBER_IS_PATIENT, BCBS_MA_PATIENT_IS_DEPENDENT_AND_HAS_MEDICARE] * 10

        outcomes = eligibility_service.decode_batch(texts, max_workers=4)

        assert len(outcomes) == 20
        for index, outcome in enumerate(outcomes):
            assert outcome.patient_is_dependent is (index % 2 == 1)

    def test_decode_batch_matches_sequential_decode(self, eligibility_service):
        """Test parallel decoding gives the same responses as sequential decoding."""
        texts = [BCBS_MA_PATIENT_IS_DEPENDENT_AND_HAS_MEDICARE, SUBSCRIBER_IS_PATIENT, SUBSCRIBER_NOT_FOUND]

        outcomes = eligibility_service.decode_batch(texts)

        assert outcomes == [eligibility_service.decode(t) for t in texts]

    def test_decode_batch_isolates_failures(self, eligibility_service):
        """Test one bad document does not fail the batch."""
        texts = [SUBSCRIBER_IS_PATIENT, "", DEPENDENT_WITHOUT_SUBSCRIBER, SUBSCRIBER_NOT_FOUND]

        outcomes = eligibility_service.decode_batch(texts)

        assert isinstance(outcomes[0], EligibilityResponse)
        assert isinstance(outcomes[1], X12ParseError)
        assert isinstance(outcomes[2], X12ParseError)
        assert isinstance(outcomes[3], EligibilityResponse)

    def test_decode_batch_empty(self, eligibility_service):
        """Test an empty batch returns an empty list."""
        assert eligibility_service.decode_batch([]) == []


# =============================================================================
# Factory
# =============================================================================


class TestFactoryFunctions:
    """Test factory functions."""

    def test_get_eligibility_service(self, monkeypatch):
        """Test factory returns a shared instance."""
        monkeypatch.setattr("src.services.edi.eligibility_service._eligibility_service", None)
        first = get_eligibility_service(gateway=MagicMock())
        second = get_eligibility_service()

        assert isinstance(first, EligibilityService)
        assert first is second
