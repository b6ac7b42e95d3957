"""
Eligibility Service Configuration
Settings for the CORE II eligibility gateway, decoding workers and logging.
Source: https://docs.pydantic.dev/latest/concepts/pydantic_settings/
"""

from typing import Optional

from pydantic import Field, SecretStr, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class EligibilitySettings(BaseSettings):
    """
    Eligibility configuration settings.

    Every field can be set from the environment with the ELIGIBILITY_ prefix,
    e.g. ELIGIBILITY_USERNAME, ELIGIBILITY_PASSWORD.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
        env_prefix="ELIGIBILITY_",
    )

    # =========================================================================
    # CORE II Endpoint
    # =========================================================================
    ENDPOINT: str = Field(
        default="https://api.gatewayedi.com/v2/CORE_CAQH/soap",
        description="CAQH CORE II SOAP endpoint of the clearinghouse",
    )
    USERNAME: Optional[str] = Field(
        default=None,
        description="Clearinghouse user name (also sent as SenderID)",
    )
    PASSWORD: Optional[SecretStr] = Field(
        default=None,
        description="Clearinghouse password (WS-Security PasswordText)",
    )
    RECEIVER_ID: str = Field(
        default="GATEWAY EDI",
        description="CORE envelope ReceiverID",
    )
    CORE_RULE_VERSION: str = Field(
        default="2.2.0",
        description="CORE envelope CORERuleVersion",
    )
    PAYLOAD_TYPE: str = Field(
        default="X12_270_Request_005010X279A1",
        description="CORE envelope PayloadType for real-time 270 requests",
    )

    # =========================================================================
    # Transport
    # =========================================================================
    TIMEOUT_SECONDS: float = Field(
        default=30.0,
        gt=0,
        description="HTTP timeout for one CORE request",
    )
    RETRY_ATTEMPTS: int = Field(
        default=3,
        ge=1,
        le=10,
        description="Attempts for transient transport failures",
    )
    RETRY_DELAY_SECONDS: float = Field(
        default=1.0,
        ge=0,
        description="Initial delay between attempts (doubles each retry)",
    )

    # =========================================================================
    # Decoding
    # =========================================================================
    DECODE_WORKERS: int = Field(
        default=4,
        ge=1,
        le=64,
        description="Worker threads for batch 271 decoding",
    )

    # =========================================================================
    # Logging
    # =========================================================================
    LOG_LEVEL: str = Field(
        default="INFO",
        description="Logging level",
    )
    JSON_LOGS: bool = Field(
        default=False,
        description="Emit JSON log lines",
    )
    LOG_FILE: Optional[str] = Field(
        default=None,
        description="Optional rotating log file path",
    )

    # =========================================================================
    # Validators
    # =========================================================================
    @field_validator("LOG_LEVEL")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Normalize and validate the log level name."""
        level = v.upper()
        if level not in {"TRACE", "DEBUG", "INFO", "SUCCESS", "WARNING", "ERROR", "CRITICAL"}:
            raise ValueError(f"Invalid log level: {v}")
        return level

    @property
    def has_credentials(self) -> bool:
        """Check if gateway credentials are configured."""
        return bool(self.USERNAME) and self.PASSWORD is not None


# Singleton instance
_eligibility_settings: Optional[EligibilitySettings] = None


def get_eligibility_settings() -> EligibilitySettings:
    """
    Get cached eligibility settings instance.

    Returns:
        EligibilitySettings instance
    """
    global _eligibility_settings
    if _eligibility_settings is None:
        _eligibility_settings = EligibilitySettings()
    return _eligibility_settings
