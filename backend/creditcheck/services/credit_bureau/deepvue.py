"""DeepVue credit bureau adapter (Equifax CIR via the DeepVue SDK flow).

DeepVue hosts the consent and OTP screens itself: we open a session, send the
user to the returned ``redirect_url``, and DeepVue redirects back to our
callback with ``transaction_id`` appended once verification is done. The
report is generated asynchronously and fetched by transaction id.
"""

import logging
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional

import httpx

from creditcheck.config import settings
from creditcheck.services.credit_bureau.adapter import (
    BureauError,
    BureauNotConfiguredError,
    BureauSession,
    CreditBureauAdapter,
    ReportNotReadyError,
)

logger = logging.getLogger(__name__)

AUTHORIZE_PATH = "/v1/authorize"
SESSION_PATH = "/v2/financial-services/credit-bureau/equifax/credit-report/sdk/session"
REPORT_PATH = "/v2/financial-services/credit-bureau/credit-report/sdk/report"


class DeepVueAdapter(CreditBureauAdapter):
    """REST adapter for the DeepVue credit-report SDK endpoints."""

    _shared: Optional["DeepVueAdapter"] = None

    def __init__(self, transport: Optional[httpx.AsyncBaseTransport] = None):
        self.base_url = settings.deepvue_base_url.rstrip("/")
        self.client_id = settings.deepvue_client_id
        self.client_secret = settings.deepvue_client_secret
        self.api_key = settings.deepvue_api_key
        self.callback_url = settings.bureau_callback_url
        self._transport = transport
        self._access_token: Optional[str] = None
        self._token_expiry: Optional[datetime] = None

    @classmethod
    def shared(cls) -> "DeepVueAdapter":
        """Process-wide instance so the access token is reused between requests."""
        if cls._shared is None:
            cls._shared = cls()
        return cls._shared

    @property
    def provider_name(self) -> str:
        return "deepvue"

    # ── helpers ────────────────────────────────────────

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            base_url=self.base_url,
            timeout=settings.http_timeout_seconds,
            transport=self._transport,
        )

    def _ensure_configured(self) -> None:
        if not self.client_id or not self.client_secret or not self.api_key:
            raise BureauNotConfiguredError("DeepVue credentials not configured")

    async def _headers(self) -> Dict[str, str]:
        token = await self.get_access_token()
        return {
            "Authorization": f"Bearer {token}",
            "x-api-key": self.api_key,
            "Content-Type": "application/json",
        }

    async def get_access_token(self) -> str:
        """Return a cached access token, authorizing again once it nears expiry."""
        now = datetime.now(timezone.utc)
        if self._access_token and self._token_expiry and now < self._token_expiry:
            return self._access_token

        try:
            async with self._client() as client:
                response = await client.post(
                    AUTHORIZE_PATH,
                    data={"client_id": self.client_id, "client_secret": self.client_secret},
                )
            body = response.json()
        except (httpx.HTTPError, ValueError) as exc:
            logger.error("DeepVue token request failed: %s", exc)
            raise BureauError("Failed to authenticate with DeepVue API") from exc

        token = body.get("access_token") if isinstance(body, dict) else None
        if response.status_code >= 400 or not token:
            logger.error("DeepVue token error %s: %s", response.status_code, body)
            raise BureauError(
                "Failed to get access token from DeepVue",
                status_code=response.status_code,
                payload=body,
            )

        self._access_token = token
        # Tokens live 24h; refresh an hour early
        self._token_expiry = now + timedelta(hours=settings.bureau_token_ttl_hours)
        return token

    # ── public interface ───────────────────────────────

    async def create_session(self, first_name: str, mobile_number: str) -> BureauSession:
        self._ensure_configured()
        payload = {
            "redirect_uri": self.callback_url,
            "full_name": first_name or "",
            "mobile_number": mobile_number or "",
            "enrich": True,
        }
        logger.info("Creating DeepVue session (redirect_uri=%s)", self.callback_url)

        try:
            headers = await self._headers()
            async with self._client() as client:
                response = await client.post(SESSION_PATH, json=payload, headers=headers)
            body = response.json()
        except (httpx.HTTPError, ValueError) as exc:
            logger.error("DeepVue session request failed: %s", exc)
            raise BureauError("Failed to create DeepVue session") from exc

        if not isinstance(body, dict):
            body = {}
        data = body.get("data") if isinstance(body.get("data"), dict) else {}
        redirect_url = data.get("redirect_url")
        if body.get("code") != 201 or not redirect_url:
            logger.error("DeepVue session creation failed (%s): %s", response.status_code, body)
            raise BureauError(
                "DeepVue session creation failed",
                status_code=response.status_code,
                payload=body,
            )

        return BureauSession(
            redirect_url=redirect_url,
            transaction_id=body.get("transaction_id"),
            session_data=data,
        )

    async def fetch_report(self, transaction_id: str) -> Dict[str, Any]:
        self._ensure_configured()
        try:
            headers = await self._headers()
            async with self._client() as client:
                response = await client.get(
                    REPORT_PATH,
                    params={"transaction_id": transaction_id},
                    headers=headers,
                )
            body = response.json()
        except (httpx.HTTPError, ValueError) as exc:
            logger.error("DeepVue report request failed for %s: %s", transaction_id, exc)
            raise BureauError("Failed to fetch credit report from DeepVue") from exc

        if not isinstance(body, dict):
            body = {}
        message = str(body.get("message", ""))
        if response.status_code == 404 or "not found" in message.lower():
            raise ReportNotReadyError(
                "Report is being processed, please try again later",
                status_code=response.status_code,
                payload=body,
            )

        data = body.get("data")
        if body.get("code") != 200 or not data:
            logger.error("DeepVue report error for %s (%s): %s", transaction_id, response.status_code, body)
            raise BureauError(
                "CIBIL report not ready or not found",
                status_code=response.status_code,
                payload=body,
            )

        return {
            "credit_score": data.get("credit_score"),
            "credit_report": data.get("credit_report"),
            "pan": data.get("pan"),
            "mobile": data.get("mobile"),
            "name": data.get("name"),
            "pdf_url": data.get("pdf_url"),
            "raw_data": data,
        }

    async def download_pdf(self, pdf_url: str) -> bytes:
        try:
            token = await self.get_access_token()
            async with httpx.AsyncClient(
                timeout=settings.http_timeout_seconds,
                transport=self._transport,
                follow_redirects=True,
            ) as client:
                response = await client.get(pdf_url, headers={"Authorization": f"Bearer {token}"})
                response.raise_for_status()
        except httpx.HTTPError as exc:
            logger.error("DeepVue PDF download failed: %s", exc)
            raise BureauError("Failed to download CIBIL PDF") from exc
        return response.content

    async def check_health(self) -> bool:
        try:
            self._ensure_configured()
            await self.get_access_token()
            return True
        except BureauError:
            return False
