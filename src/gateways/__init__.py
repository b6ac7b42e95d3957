"""
Provider Gateway Module for Eligibility Verification.

Transport to the clearinghouse and the error types shared by gateways.
"""

from src.gateways.base import (
    GatewayError,
    ProviderAuthenticationError,
    ProviderTimeoutError,
    ProviderUnavailableError,
    with_retry,
)
from src.gateways.core2_gateway import (
    Core2FaultError,
    Core2Gateway,
    Core2Response,
)

__all__ = [
    # Base
    "GatewayError",
    "ProviderAuthenticationError",
    "ProviderTimeoutError",
    "ProviderUnavailableError",
    "with_retry",
    # CORE II
    "Core2FaultError",
    "Core2Gateway",
    "Core2Response",
]
