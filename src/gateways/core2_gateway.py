"""
CAQH CORE II Real-Time Eligibility Gateway.

Sends an X12 270 request to the clearinghouse over the CORE II SOAP API and
returns the X12 271 payload:
- SOAP 1.2 envelope with a WS-Security UsernameToken (PasswordText)
- COREEnvelopeRealTimeRequest body with unqualified child elements
- multipart/related (MTOM) responses unwrapped to the root SOAP part
- SOAP faults raised as Core2FaultError
- Transient transport failures retried with backoff

Payloads carry PHI and are never logged; only payload IDs and status codes.
"""

from dataclasses import dataclass
from datetime import datetime, timezone
from email.parser import BytesParser
from email import policy
from typing import Optional
from uuid import uuid4

import httpx
from lxml import etree
from pydantic import SecretStr

from src.core.config import EligibilitySettings, get_eligibility_settings
from src.gateways.base import (
    TRANSIENT_ERRORS,
    GatewayError,
    ProviderAuthenticationError,
    ProviderTimeoutError,
    ProviderUnavailableError,
    with_retry,
)
from src.utils.logging import get_logger

logger = get_logger(__name__)

PROVIDER_NAME = "core2"

SOAP_NS = "http://www.w3.org/2003/05/soap-envelope"
WSSE_NS = "http://docs.oasis-open.org/wss/2004/01/oasis-200401-wss-wssecurity-secext-1.0.xsd"
WSU_NS = "http://docs.oasis-open.org/wss/2004/01/oasis-200401-wss-wssecurity-utility-1.0.xsd"
CORE_NS = "http://www.caqh.org/SOAP/WSDL/CORERule2.2.0.xsd"
PASSWORD_TEXT = (
    "http://docs.oasis-open.org/wss/2004/01/"
    "oasis-200401-wss-username-token-profile-1.0#PasswordText"
)

SOAP_ACTION = "RealTimeTransaction"
PROCESSING_MODE = "RealTime"
SUCCESS_CODE = "Success"

# Status codes returned by proxies in front of the clearinghouse
RETRYABLE_STATUS_CODES = frozenset({502, 503, 504})

_XML_PARSER = etree.XMLParser(resolve_entities=False, no_network=True)


class Core2FaultError(GatewayError):
    """SOAP fault returned by the CORE II endpoint."""

    def __init__(
        self,
        message: str,
        fault_code: Optional[str] = None,
        fault_reason: Optional[str] = None,
        status_code: Optional[int] = None,
    ):
        super().__init__(message, provider=PROVIDER_NAME)
        self.fault_code = fault_code
        self.fault_reason = fault_reason
        self.status_code = status_code


@dataclass(frozen=True)
class Core2Response:
    """Fields of a COREEnvelopeRealTimeResponse."""

    payload: Optional[str] = None
    payload_id: Optional[str] = None
    payload_type: Optional[str] = None
    processing_mode: Optional[str] = None
    timestamp: Optional[str] = None
    sender_id: Optional[str] = None
    receiver_id: Optional[str] = None
    core_rule_version: Optional[str] = None
    error_code: Optional[str] = None
    error_message: Optional[str] = None
    status_code: int = 200

    @property
    def success(self) -> bool:
        return self.error_code in (None, SUCCESS_CODE)


class Core2Gateway:
    """
    CORE II SOAP client for real-time 270/271 transactions.

    The caller supplies the 270 payload verbatim.

    Usage:
        gateway = Core2Gateway(USERNAME="user", PASSWORD="secret")
        response = await gateway.check_eligibility(x12_270)
        if response.success:
            x12_271 = response.payload
    """

    def __init__(
        self,
        settings: Optional[EligibilitySettings] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        **overrides,
    ):
        """
        Initialize the gateway.

        Args:
            settings: Base settings (defaults to the environment settings)
            transport: Optional httpx transport (tests use httpx.MockTransport)
            **overrides: Settings fields that replace the base values for this gateway
        """
        base = settings or get_eligibility_settings()
        if isinstance(overrides.get("PASSWORD"), str):
            overrides["PASSWORD"] = SecretStr(overrides["PASSWORD"])
        self.settings = base.model_copy(update=overrides) if overrides else base
        self._transport = transport

    # =========================================================================
    # Request
    # =========================================================================

    def build_envelope(
        self,
        payload: str,
        payload_id: str,
        timestamp: Optional[datetime] = None,
    ) -> bytes:
        """Build the SOAP 1.2 request envelope for a 270 payload."""
        timestamp = timestamp or datetime.now(timezone.utc)

        envelope = etree.Element(f"{{{SOAP_NS}}}Envelope", nsmap={"soap": SOAP_NS})
        header = etree.SubElement(envelope, f"{{{SOAP_NS}}}Header")
        header.append(self._build_security_header())

        body = etree.SubElement(envelope, f"{{{SOAP_NS}}}Body")
        request = etree.SubElement(
            body,
            f"{{{CORE_NS}}}COREEnvelopeRealTimeRequest",
            nsmap={"cor": CORE_NS},
        )

        # Children must be unqualified or the endpoint rejects the request
        fields = (
            ("PayloadType", self.settings.PAYLOAD_TYPE),
            ("ProcessingMode", PROCESSING_MODE),
            ("PayloadID", payload_id),
            ("TimeStamp", timestamp.strftime("%Y-%m-%dT%H:%M:%SZ")),
            ("SenderID", self.settings.USERNAME or ""),
            ("ReceiverID", self.settings.RECEIVER_ID),
            ("CORERuleVersion", self.settings.CORE_RULE_VERSION),
            ("Payload", payload),
        )
        for name, value in fields:
            etree.SubElement(request, name).text = value

        return etree.tostring(envelope, xml_declaration=True, encoding="UTF-8")

    def _build_security_header(self) -> etree._Element:
        """wsse:Security with a UsernameToken; digest passwords are not accepted."""
        security = etree.Element(
            f"{{{WSSE_NS}}}Security",
            attrib={f"{{{SOAP_NS}}}mustUnderstand": "true"},
            nsmap={"wsse": WSSE_NS, "wsu": WSU_NS},
        )
        token = etree.SubElement(
            security,
            f"{{{WSSE_NS}}}UsernameToken",
            attrib={f"{{{WSU_NS}}}Id": f"UsernameToken-{uuid4().hex}"},
        )
        etree.SubElement(token, f"{{{WSSE_NS}}}Username").text = self.settings.USERNAME or ""
        password = etree.SubElement(
            token, f"{{{WSSE_NS}}}Password", attrib={"Type": PASSWORD_TEXT}
        )
        secret = self.settings.PASSWORD
        password.text = secret.get_secret_value() if secret is not None else ""
        return security

    # =========================================================================
    # Transport
    # =========================================================================

    async def check_eligibility(
        self, payload: str, payload_id: Optional[str] = None
    ) -> Core2Response:
        """
        Send a 270 request and return the CORE response envelope.

        Raises:
            ProviderAuthenticationError: On HTTP 401/403
            ProviderTimeoutError: When every attempt timed out
            ProviderUnavailableError: When the endpoint could not be reached
            Core2FaultError: On a SOAP fault
            GatewayError: On any other unusable response
        """
        payload_id = payload_id or str(uuid4())
        body = self.build_envelope(payload, payload_id)

        send = with_retry(
            max_attempts=self.settings.RETRY_ATTEMPTS,
            delay=self.settings.RETRY_DELAY_SECONDS,
            exceptions=TRANSIENT_ERRORS,
        )(self._post)

        logger.info(f"CORE II request {payload_id}: sending to {self.settings.ENDPOINT}")
        response = await send(body)
        logger.info(f"CORE II request {payload_id}: HTTP {response.status_code}")

        root = self._parse_xml(self._unwrap_multipart(response), response.status_code)
        return self._read_envelope(root, response.status_code)

    async def _post(self, body: bytes) -> httpx.Response:
        headers = {
            "Content-Type": f'application/soap+xml; charset=utf-8; action="{SOAP_ACTION}"',
        }
        try:
            async with httpx.AsyncClient(
                timeout=self.settings.TIMEOUT_SECONDS,
                transport=self._transport,
            ) as client:
                response = await client.post(self.settings.ENDPOINT, content=body, headers=headers)
        except httpx.TimeoutException as e:
            raise ProviderTimeoutError(
                f"CORE II request timed out after {self.settings.TIMEOUT_SECONDS}s",
                provider=PROVIDER_NAME,
                original_error=e,
            )
        except httpx.TransportError as e:
            raise ProviderUnavailableError(
                f"CORE II endpoint unreachable: {type(e).__name__}",
                provider=PROVIDER_NAME,
                original_error=e,
            )

        if response.status_code in (401, 403):
            raise ProviderAuthenticationError(
                f"CORE II authentication failed (HTTP {response.status_code})",
                provider=PROVIDER_NAME,
            )
        if response.status_code in RETRYABLE_STATUS_CODES:
            raise ProviderUnavailableError(
                f"CORE II endpoint unavailable (HTTP {response.status_code})",
                provider=PROVIDER_NAME,
            )
        return response

    # =========================================================================
    # Response
    # =========================================================================

    def _unwrap_multipart(self, response: httpx.Response) -> bytes:
        """Return the root SOAP part of a multipart/related body, else the body."""
        content_type = response.headers.get("content-type", "")
        if not content_type.lower().startswith("multipart/"):
            return response.content

        raw = b"Content-Type: " + content_type.encode("latin-1") + b"\r\n\r\n" + response.content
        message = BytesParser(policy=policy.default).parsebytes(raw)
        parts = list(message.iter_parts())
        if not parts:
            raise GatewayError("Multipart CORE II response has no parts", provider=PROVIDER_NAME)

        start = message.get_param("start")
        root_part = parts[0]
        if start:
            for part in parts:
                if part.get("Content-ID", "").strip() == start.strip():
                    root_part = part
                    break

        logger.debug(f"Unwrapped multipart CORE II response with {len(parts)} part(s)")
        return root_part.get_payload(decode=True) or b""

    def _parse_xml(self, content: bytes, status_code: int) -> etree._Element:
        try:
            return etree.fromstring(content, parser=_XML_PARSER)
        except etree.XMLSyntaxError as e:
            raise GatewayError(
                f"CORE II response is not XML (HTTP {status_code})",
                provider=PROVIDER_NAME,
                original_error=e,
            )

    def _read_envelope(self, root: etree._Element, status_code: int) -> Core2Response:
        fault = root.find(f"{{{SOAP_NS}}}Body/{{{SOAP_NS}}}Fault")
        if fault is not None:
            fault_code = fault.findtext(f"{{{SOAP_NS}}}Code/{{{SOAP_NS}}}Value")
            fault_reason = fault.findtext(f"{{{SOAP_NS}}}Reason/{{{SOAP_NS}}}Text")
            logger.warning(f"CORE II SOAP fault {fault_code} (HTTP {status_code})")
            raise Core2FaultError(
                f"SOAP fault {fault_code}: {fault_reason}",
                fault_code=fault_code,
                fault_reason=fault_reason,
                status_code=status_code,
            )

        envelope = next(
            (
                el
                for el in root.iter()
                if isinstance(el.tag, str)
                and etree.QName(el).localname == "COREEnvelopeRealTimeResponse"
            ),
            None,
        )
        if envelope is None:
            raise GatewayError(
                f"No COREEnvelopeRealTimeResponse in CORE II response (HTTP {status_code})",
                provider=PROVIDER_NAME,
            )

        values = {
            etree.QName(child).localname: child.text
            for child in envelope
            if isinstance(child.tag, str)
        }
        response = Core2Response(
            payload=values.get("Payload"),
            payload_id=values.get("PayloadID"),
            payload_type=values.get("PayloadType"),
            processing_mode=values.get("ProcessingMode"),
            timestamp=values.get("TimeStamp"),
            sender_id=values.get("SenderID"),
            receiver_id=values.get("ReceiverID"),
            core_rule_version=values.get("CORERuleVersion"),
            error_code=values.get("ErrorCode"),
            error_message=values.get("ErrorMessage"),
            status_code=status_code,
        )
        if not response.success:
            logger.warning(f"CORE II response {response.payload_id}: error code {response.error_code}")
        return response
