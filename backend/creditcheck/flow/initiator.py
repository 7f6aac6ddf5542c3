"""Form submission: validate, detour through login if needed, start the bureau session."""

import asyncio
import enum
import logging
from typing import Awaitable, Callable

from creditcheck.config import settings
from creditcheck.flow.api_client import CreditReportApiClient
from creditcheck.flow.errors import AuthExpiredError, SessionStartError, ValidationError
from creditcheck.flow.intent import CreditCheckRequest, build_auth_redirect
from creditcheck.flow.page import DurableStorage, Navigator, Notifier
from creditcheck.flow.state import BureauSession, BureauSessionStatus, CreditCheckState

logger = logging.getLogger(__name__)


class SubmitOutcome(str, enum.Enum):
    INVALID = "invalid"
    IGNORED = "ignored"
    DEFERRED_TO_AUTH = "deferred_to_auth"
    REDIRECTED = "redirected"
    FAILED = "failed"
    AUTH_EXPIRED = "auth_expired"


class ReportRequestInitiator:
    def __init__(
        self,
        api: CreditReportApiClient,
        storage: DurableStorage,
        navigator: Navigator,
        notifier: Notifier,
        state: CreditCheckState,
        on_auth_expired: Callable[[], Awaitable[None]],
    ):
        self.api = api
        self.storage = storage
        self.navigator = navigator
        self.notifier = notifier
        self.state = state
        self.on_auth_expired = on_auth_expired
        self._background: set[asyncio.Task] = set()

    async def submit(self, request: CreditCheckRequest) -> SubmitOutcome:
        self.state.form = request
        try:
            request.validate()
        except ValidationError as exc:
            self.state.errors = {exc.field: exc.message}
            self.notifier.error(exc.message)
            return SubmitOutcome.INVALID
        self.state.errors = {}

        if not self.storage.auth_token():
            redirect = build_auth_redirect(request, settings.auth_path, settings.credit_check_path)
            self.notifier.info("Please login to continue")
            self.navigator.push(redirect)
            return SubmitOutcome.DEFERRED_TO_AUTH

        if self.state.is_submitting:
            return SubmitOutcome.IGNORED
        self.state.is_submitting = True

        self._capture_lead_in_background(request)

        try:
            session = await self._start_session(request)
        except AuthExpiredError:
            self.state.is_submitting = False
            await self.on_auth_expired()
            return SubmitOutcome.AUTH_EXPIRED
        except SessionStartError as exc:
            logger.warning("Bureau session start failed: %s", exc)
            self.notifier.error(str(exc))
            self.state.is_submitting = False
            return SubmitOutcome.FAILED

        self.state.bureau_session = session
        self.notifier.success("Redirecting to verification...")
        session.status = BureauSessionStatus.REDIRECTED
        self.navigator.navigate(session.redirect_url)
        return SubmitOutcome.REDIRECTED

    async def _start_session(self, request: CreditCheckRequest) -> BureauSession:
        try:
            result = await self.api.start_session(request.first_name, request.mobile_number)
        except AuthExpiredError:
            raise
        except Exception as exc:
            message = getattr(exc, "message", None) or "Failed to start verification."
            raise SessionStartError(message) from exc

        if not result.get("success") or not result.get("redirect_url"):
            raise SessionStartError("Failed to start session. Please try again.")
        return BureauSession(
            transaction_id=result.get("transaction_id"),
            redirect_url=result["redirect_url"],
        )

    # ── lead capture ───────────────────────────────────

    def _capture_lead_in_background(self, request: CreditCheckRequest) -> None:
        task = asyncio.create_task(self._capture_lead(request))
        self._background.add(task)
        task.add_done_callback(self._background.discard)

    async def _capture_lead(self, request: CreditCheckRequest) -> None:
        try:
            await self.api.capture_lead(request)
        except Exception as exc:
            logger.error("Lead save failed: %s", exc)

    async def wait_background(self) -> None:
        """Let pending lead writes finish (used before tearing the page down)."""
        if self._background:
            await asyncio.gather(*self._background, return_exceptions=True)
