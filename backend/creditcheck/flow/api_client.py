"""HTTP client for the credit-report backend, as the flow consumes it."""

import logging
from typing import Any, Optional

import httpx

from creditcheck.config import settings
from creditcheck.flow.errors import ApiError, AuthExpiredError, ReportProcessingError
from creditcheck.flow.intent import CreditCheckRequest
from creditcheck.flow.page import DurableStorage

logger = logging.getLogger(__name__)


class CreditReportApiClient:
    """One method per backend operation.

    Every non-2xx answer raises ApiError (AuthExpiredError for 401). The
    bearer credential is read from durable storage on each call so a login
    that happened in another page load is picked up.
    """

    def __init__(
        self,
        storage: DurableStorage,
        base_url: Optional[str] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        timeout: Optional[float] = None,
    ):
        self.storage = storage
        self.base_url = (base_url or settings.api_base_url).rstrip("/")
        self._transport = transport
        self._timeout = timeout if timeout is not None else settings.http_timeout_seconds

    def _headers(self) -> dict[str, str]:
        headers = {"Accept": "application/json"}
        token = self.storage.auth_token()
        if token:
            headers["Authorization"] = f"Bearer {token}"
        return headers

    async def _request(self, method: str, path: str, **kwargs: Any) -> httpx.Response:
        async with httpx.AsyncClient(
            base_url=self.base_url, timeout=self._timeout, transport=self._transport,
        ) as client:
            response = await client.request(method, path, headers=self._headers(), **kwargs)

        if response.status_code == 401:
            raise AuthExpiredError()
        if response.status_code >= 400:
            try:
                body = response.json()
            except ValueError:
                body = None
            detail = body.get("detail") if isinstance(body, dict) else None
            message = detail if isinstance(detail, str) else f"HTTP {response.status_code}"
            raise ApiError(response.status_code, message, payload=body)
        return response

    # ── operations ─────────────────────────────────────

    async def check_cache(self) -> dict:
        response = await self._request("GET", "/credit-report/check-cache")
        return response.json()

    async def get_my_report(self) -> dict:
        response = await self._request("GET", "/credit-report/my-report")
        return response.json()

    async def start_session(self, first_name: str, mobile_number: str) -> dict:
        response = await self._request(
            "POST",
            "/credit-report/session",
            json={"firstName": first_name, "mobileNumber": mobile_number},
        )
        return response.json()

    async def fetch_report_by_transaction(self, transaction_id: str) -> dict:
        response = await self._request(
            "POST", "/credit-report/fetch", json={"transactionId": transaction_id},
        )
        if response.status_code == 202:
            raise ReportProcessingError(202, "Report is still being processed", payload=response.json())
        return response.json()

    async def get_report_pdf_link(self) -> dict:
        response = await self._request("GET", "/credit-report/pdf")
        return response.json()

    async def capture_lead(self, request: CreditCheckRequest) -> dict:
        response = await self._request("POST", "/client/credit-check", json=request.to_payload())
        return response.json()
