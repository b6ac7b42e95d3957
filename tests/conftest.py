"""
Pytest Configuration and Fixtures.
Shared test fixtures for all test modules.
"""

import sys
from pathlib import Path

import pytest

# Repository root on the path so `src` and `tests.fixtures` import
root_path = Path(__file__).parent.parent
sys.path.insert(0, str(root_path))

from src.core.config import EligibilitySettings  # noqa: E402
from src.services.edi.x12_271_parser import X12271Parser  # noqa: E402
from tests.fixtures import (  # noqa: E402
    BCBS_MA_PATIENT_IS_DEPENDENT_AND_HAS_MEDICARE,
    SUBSCRIBER_IS_PATIENT,
)


@pytest.fixture
def parser():
    """Create a 271 parser."""
    return X12271Parser()


@pytest.fixture
def bcbs_ma_response(parser):
    """Decoded BCBS MA response where the patient is a Medicare dependent."""
    return parser.parse(BCBS_MA_PATIENT_IS_DEPENDENT_AND_HAS_MEDICARE)


@pytest.fixture
def subscriber_response(parser):
    """Decoded response where the subscriber is the patient."""
    return parser.parse(SUBSCRIBER_IS_PATIENT)


@pytest.fixture
def eligibility_settings():
    """Settings isolated from the environment and .env files."""
    return EligibilitySettings(
        _env_file=None,
        ENDPOINT="https://core.test/soap",
        USERNAME="testuser",
        PASSWORD="testpassword",
        RETRY_ATTEMPTS=2,
        RETRY_DELAY_SECONDS=0,
        DECODE_WORKERS=4,
    )


# Configure pytest markers
def pytest_configure(config):
    """Configure pytest markers."""
    config.addinivalue_line(
        "markers", "unit: mark test as a unit test"
    )
    config.addinivalue_line(
        "markers", "api: mark test as an API test"
    )
