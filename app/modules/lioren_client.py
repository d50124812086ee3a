"""
DTE-CL Bridge — Module: LiorenClient
Submits document requests to the Lioren issuing API.

Lioren Endpoints:
- POST /boletas        (39)
- POST /dtes           (33)
- POST /notas-credito  (61)
- Headers: Authorization: Bearer {api_key}, Content-Type: application/json
- Response (success): {"folio": 1234, "urlPDF": "...", "urlXML": "...", ...}
- Response (error): any non-2xx, body is returned to the caller untouched

No retries here: timeouts and connection failures surface as retryable
LiorenError and the webhook sender (Shopify) redelivers.
"""

import httpx
import logging

from app.core.config import Settings, get_lioren_url
from app.lioren.dte_builder import endpoint_for
from app.schemas.models import DocumentRequest, IssueResult, TipoDocumento

logger = logging.getLogger(__name__)


class LiorenError(Exception):
    """Raised when Lioren rejects a document or cannot be reached."""
    def __init__(self, message: str, status_code: int = 500,
                 response_body=None, retryable: bool = False):
        self.message = message
        self.status_code = status_code
        self.response_body = response_body
        self.retryable = retryable
        super().__init__(self.message)

    def to_details(self) -> dict:
        return {
            "upstream_status": self.status_code,
            "upstream_body": self.response_body,
            "retryable": self.retryable,
        }


class LiorenClient:
    """
    Usage:
        client = LiorenClient(settings)
        result = await client.submit(TipoDocumento.BOLETA, document_request)
    """

    def __init__(self, settings: Settings, transport: httpx.AsyncBaseTransport | None = None):
        self.settings = settings
        self.timeout = settings.http_timeout_seconds
        self._transport = transport

    def url_for(self, tipo: TipoDocumento) -> str:
        return get_lioren_url(endpoint_for(tipo), self.settings)

    def _headers(self) -> dict:
        return {
            "Authorization": f"Bearer {self.settings.lioren_api_key}",
            "Content-Type": "application/json",
            "Accept": "application/json",
        }

    async def submit(self, tipo: TipoDocumento, document: DocumentRequest) -> IssueResult:
        """
        Emit a document.

        Raises:
            LiorenError: on non-2xx responses (with Lioren's raw body),
                         timeouts (504) and connection errors (502)
        """
        url = self.url_for(tipo)
        payload = document.to_payload()

        logger.info(f"Calling Lioren: tipo={tipo.value}, url={url}, detalles={len(document.detalles)}")
        logger.debug(f"Lioren payload: {payload}")

        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
                response = await client.post(url, json=payload, headers=self._headers())
        except httpx.TimeoutException:
            logger.warning(f"Lioren timeout after {self.timeout}s: tipo={tipo.value}")
            raise LiorenError(
                message=f"Timeout llamando a Lioren: no respondió en {self.timeout}s.",
                status_code=504,
                retryable=True,
            )
        except httpx.TransportError as e:
            logger.warning(f"Lioren connection error: {e}")
            raise LiorenError(
                message=f"No se pudo conectar con Lioren: {e}",
                status_code=502,
                retryable=True,
            )

        return self._parse_response(response, tipo)

    def _parse_response(self, response: httpx.Response, tipo: TipoDocumento) -> IssueResult:
        """Parse Lioren's response into an IssueResult or raise LiorenError."""
        try:
            data = response.json()
        except ValueError:
            raise LiorenError(
                message=(
                    f"Lioren retornó una respuesta no-JSON (HTTP {response.status_code}). "
                    f"Respuesta: {response.text[:300]}"
                ),
                status_code=response.status_code,
                response_body=response.text[:1000],
                retryable=response.status_code >= 500,
            )

        if not response.is_success:
            logger.error(f"Lioren API Error {response.status_code}: {data}")
            raise LiorenError(
                message=f"API Error {response.status_code}: {data}",
                status_code=response.status_code,
                response_body=data,
                retryable=response.status_code >= 500,
            )

        if not isinstance(data, dict):
            data = {"data": data}
        folio = data.get("folio")
        logger.info(f"Lioren accepted tipo={tipo.value}: folio={folio}")
        return IssueResult(
            folio=str(folio) if folio is not None else None,
            url_pdf=data.get("urlPDF"),
            url_xml=data.get("urlXML"),
            raw_response=data,
        )
