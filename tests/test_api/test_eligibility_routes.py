"""
Eligibility Routes Tests.
Coverage for the 271 decode and real-time check endpoints.
"""

from unittest.mock import AsyncMock, MagicMock

import pytest
from fastapi import status
from fastapi.testclient import TestClient

from src.api.main import app
from src.api.routes import health
from src.api.routes.eligibility import get_service
from src.core.config import EligibilitySettings
from src.gateways.base import ProviderAuthenticationError, ProviderTimeoutError
from src.gateways.core2_gateway import Core2FaultError, Core2Response
from src.services.edi.eligibility_service import EligibilityService
from tests.fixtures import (
    BCBS_MA_PATIENT_BENEFIT_COUNT,
    BCBS_MA_PATIENT_IS_DEPENDENT_AND_HAS_MEDICARE,
    DEPENDENT_WITHOUT_SUBSCRIBER,
    PAYER_REJECTED_NO_SUBSCRIBER,
    SUBSCRIBER_IS_PATIENT,
)


X12_270 = "ST*270*0001*005010X279A1~SE*2*0001~"


@pytest.fixture
def gateway():
    """Gateway double; tests set check_eligibility."""
    return MagicMock()


@pytest.fixture
def client(gateway, eligibility_settings):
    """Test client wired to a service with the gateway double."""
    service = EligibilityService(gateway=gateway, settings=eligibility_settings)
    app.dependency_overrides[get_service] = lambda: service
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.mark.api
class TestDecodeEndpoint:
    """Test POST /api/v1/eligibility/decode."""

    def test_decode_dependent_patient(self, client):
        """Test a dependent patient is returned with its benefits."""
        response = client.post(
            "/api/v1/eligibility/decode",
            json={"x12": BCBS_MA_PATIENT_IS_DEPENDENT_AND_HAS_MEDICARE},
        )

        assert response.status_code == status.HTTP_200_OK
        data = response.json()
        assert data["patient_is_dependent"] is True
        assert data["patient"] == data["dependent"]
        assert data["subscriber"]["benefits"] == []
        assert len(data["patient"]["benefits"]) == BCBS_MA_PATIENT_BENEFIT_COUNT
        assert data["is_active"] is True

    def test_decode_service_type_codes_are_sorted(self, client):
        """Test service type code sets serialize as sorted lists."""
        response = client.post(
            "/api/v1/eligibility/decode",
            json={"x12": BCBS_MA_PATIENT_IS_DEPENDENT_AND_HAS_MEDICARE},
        )

        for benefit in response.json()["patient"]["benefits"]:
            codes = benefit["service_type_codes"]
            assert codes == sorted(codes)

    def test_decode_subscriber_patient(self, client):
        """Test the subscriber is the patient when no dependent exists."""
        response = client.post("/api/v1/eligibility/decode", json={"x12": SUBSCRIBER_IS_PATIENT})

        data = response.json()
        assert data["dependent"] is None
        assert data["patient"]["name"]["last"] == "DOE"
        assert data["payer_name"] == "AETNA"

    def test_decode_without_subscriber_is_422(self, client):
        """Test a document with no subscriber loop is unprocessable."""
        response = client.post("/api/v1/eligibility/decode", json={"x12": PAYER_REJECTED_NO_SUBSCRIBER})

        assert response.status_code == status.HTTP_422_UNPROCESSABLE_ENTITY
        assert response.json()["detail"]["message"] == "No subscriber loop found in 271 response"

    def test_decode_structural_violation_reports_segment(self, client):
        """Test structural violations report the offending segment."""
        response = client.post("/api/v1/eligibility/decode", json={"x12": DEPENDENT_WITHOUT_SUBSCRIBER})

        assert response.status_code == status.HTTP_422_UNPROCESSABLE_ENTITY
        assert response.json()["detail"]["segment_id"] == "HL"

    def test_decode_empty_body_is_rejected(self, client):
        """Test an empty document fails request validation."""
        response = client.post("/api/v1/eligibility/decode", json={"x12": ""})
        assert response.status_code == status.HTTP_422_UNPROCESSABLE_ENTITY


@pytest.mark.api
class TestDecodeBatchEndpoint:
    """Test POST /api/v1/eligibility/decode/batch."""

    def test_batch_mixed_results(self, client):
        """Test failures are reported per item in request order."""
        response = client.post(
            "/api/v1/eligibility/decode/batch",
            json={
                "documents": [
                    SUBSCRIBER_IS_PATIENT,
                    PAYER_REJECTED_NO_SUBSCRIBER,
                    BCBS_MA_PATIENT_IS_DEPENDENT_AND_HAS_MEDICARE,
                ]
            },
        )

        assert response.status_code == status.HTTP_200_OK
        data = response.json()
        assert data["total"] == 3
        assert data["decoded_count"] == 2
        assert data["error_count"] == 1
        assert [item["index"] for item in data["items"]] == [0, 1, 2]
        assert data["items"][0]["response"]["patient_is_dependent"] is False
        assert data["items"][1]["response"] is None
        assert data["items"][1]["error"]["message"] == "No subscriber loop found in 271 response"
        assert data["items"][2]["response"]["patient_is_dependent"] is True

    def test_batch_requires_documents(self, client):
        """Test an empty batch fails request validation."""
        response = client.post("/api/v1/eligibility/decode/batch", json={"documents": []})
        assert response.status_code == status.HTTP_422_UNPROCESSABLE_ENTITY


@pytest.mark.api
class TestCheckEndpoint:
    """Test POST /api/v1/eligibility/check."""

    def test_check_success(self, client, gateway):
        """Test a completed check returns the decoded response."""
        gateway.check_eligibility = AsyncMock(
            return_value=Core2Response(
                payload=BCBS_MA_PATIENT_IS_DEPENDENT_AND_HAS_MEDICARE,
                payload_id="abc-123",
                error_code="Success",
            )
        )

        response = client.post(
            "/api/v1/eligibility/check",
            json={"payload": X12_270, "payload_id": "abc-123"},
        )

        assert response.status_code == status.HTTP_200_OK
        data = response.json()
        assert data["status"] == "completed"
        assert data["is_eligible"] is True
        assert data["payload_id"] == "abc-123"
        assert data["response"]["patient_is_dependent"] is True
        gateway.check_eligibility.assert_awaited_once_with(X12_270, payload_id="abc-123")

    @pytest.mark.parametrize(
        "error,expected_status,expected_code",
        [
            (ProviderAuthenticationError("denied"), status.HTTP_401_UNAUTHORIZED, "authentication_failed"),
            (ProviderTimeoutError("slow"), status.HTTP_504_GATEWAY_TIMEOUT, "timeout"),
            (Core2FaultError("fault"), status.HTTP_502_BAD_GATEWAY, "soap_fault"),
        ],
    )
    def test_check_gateway_failures(self, client, gateway, error, expected_status, expected_code):
        """Test gateway failures map to upstream HTTP statuses."""
        gateway.check_eligibility = AsyncMock(side_effect=error)

        response = client.post("/api/v1/eligibility/check", json={"payload": X12_270})

        assert response.status_code == expected_status
        detail = response.json()["detail"]
        assert detail["status"] == "failed"
        assert detail["error_code"] == expected_code

    def test_check_undecodable_271_is_422(self, client, gateway):
        """Test an undecodable 271 answer is unprocessable."""
        gateway.check_eligibility = AsyncMock(
            return_value=Core2Response(payload=DEPENDENT_WITHOUT_SUBSCRIBER, error_code="Success")
        )

        response = client.post("/api/v1/eligibility/check", json={"payload": X12_270})

        assert response.status_code == status.HTTP_422_UNPROCESSABLE_ENTITY
        assert response.json()["detail"]["error_code"] == "decode_failed"


@pytest.mark.api
class TestHealthEndpoints:
    """Test health endpoints."""

    def test_health(self, client):
        """Test basic health check."""
        response = client.get("/health")
        assert response.status_code == status.HTTP_200_OK
        assert response.json()["status"] == "healthy"

    def test_detailed_health_without_credentials(self, client, monkeypatch):
        """Test missing credentials report a degraded gateway."""
        monkeypatch.setattr(
            health, "get_eligibility_settings", lambda: EligibilitySettings(_env_file=None, USERNAME=None, PASSWORD=None)
        )

        data = client.get("/health/detailed").json()

        assert data["status"] == "degraded"
        assert data["checks"]["core2_gateway"] == "unconfigured"
        assert data["checks"]["decoder"] == "healthy"

    def test_detailed_health_with_credentials(self, client, monkeypatch, eligibility_settings):
        """Test configured credentials report a healthy service."""
        monkeypatch.setattr(health, "get_eligibility_settings", lambda: eligibility_settings)

        data = client.get("/health/detailed").json()

        assert data["status"] == "healthy"
        assert data["checks"]["core2_gateway"] == "configured"
