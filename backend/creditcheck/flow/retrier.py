"""Bounded polling for a report after the bureau sends the user back.

The bureau returns the browser with ``transaction_id`` in the query string
before the report is necessarily ready. The retrier polls the backend a
fixed number of times with a fixed pause between attempts. It runs at most
once per transaction id for the lifetime of the page.
"""

import asyncio
import enum
import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Optional

from creditcheck.config import settings
from creditcheck.flow.api_client import CreditReportApiClient
from creditcheck.flow.errors import FetchAttemptError, FetchExhaustedError
from creditcheck.flow.page import Navigator, Notifier
from creditcheck.flow.state import BureauSession, BureauSessionStatus, CreditCheckState

logger = logging.getLogger(__name__)

TRANSACTION_ID_PARAM = "transaction_id"


class FetchState(str, enum.Enum):
    IDLE = "idle"
    FETCHING = "fetching"
    SUCCESS = "success"
    EXHAUSTED = "exhausted"


@dataclass
class RetryState:
    transaction_id: str
    max_attempts: int
    delay_seconds: float
    attempt_count: int = 0
    last_outcome: Optional[str] = None
    state: FetchState = FetchState.IDLE


class ReportFetchRetrier:
    def __init__(
        self,
        api: CreditReportApiClient,
        navigator: Navigator,
        notifier: Notifier,
        state: CreditCheckState,
        max_attempts: Optional[int] = None,
        delay_seconds: Optional[float] = None,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ):
        self.api = api
        self.navigator = navigator
        self.notifier = notifier
        self.state = state
        self.max_attempts = max_attempts or settings.report_fetch_max_attempts
        self.delay_seconds = (
            delay_seconds if delay_seconds is not None else settings.report_fetch_delay_seconds
        )
        self._sleep = sleep
        self._launched: set[str] = set()

    def has_run(self, transaction_id: str) -> bool:
        return transaction_id in self._launched

    async def run(self, transaction_id: str) -> Optional[RetryState]:
        """Poll for ``transaction_id``.

        Returns the final RetryState, or None when a run for the same id was
        already started on this page.
        """
        if transaction_id in self._launched:
            logger.debug("Fetch for %s already started, ignoring", transaction_id)
            return None
        self._launched.add(transaction_id)

        retry = RetryState(transaction_id, self.max_attempts, self.delay_seconds)
        if self.state.bureau_session is None or (
            self.state.bureau_session.transaction_id not in (None, transaction_id)
        ):
            self.state.bureau_session = BureauSession(transaction_id=transaction_id)

        retry.state = FetchState.FETCHING
        self.state.fetching_report = True
        self.state.advisory = None

        report = None
        try:
            while retry.attempt_count < retry.max_attempts:
                retry.attempt_count += 1
                self.state.retry_count = retry.attempt_count
                try:
                    report = await self._attempt(transaction_id, retry.attempt_count)
                except FetchAttemptError as exc:
                    retry.last_outcome = str(exc.cause) if exc.cause else "empty response"
                    logger.info(
                        "Fetch attempt %s/%s for %s failed: %s",
                        retry.attempt_count, retry.max_attempts, transaction_id, retry.last_outcome,
                    )
                    if retry.attempt_count < retry.max_attempts:
                        await self._sleep(retry.delay_seconds)
                    continue
                retry.last_outcome = "success"
                break
        finally:
            self.state.fetching_report = False

        if report is not None:
            self._succeed(retry, report)
        else:
            self._exhaust(retry)
        return retry

    async def _attempt(self, transaction_id: str, attempt: int) -> dict:
        try:
            result = await self.api.fetch_report_by_transaction(transaction_id)
        except Exception as exc:
            raise FetchAttemptError(transaction_id, attempt, exc) from exc
        if not result:
            raise FetchAttemptError(transaction_id, attempt)
        return result

    def _succeed(self, retry: RetryState, report: dict) -> None:
        retry.state = FetchState.SUCCESS
        self.state.report = report
        if self.state.bureau_session is not None:
            self.state.bureau_session.status = BureauSessionStatus.COMPLETED
        self.navigator.replace(str(self.navigator.location.without(TRANSACTION_ID_PARAM)))
        self.notifier.success("CIBIL report generated successfully")
        logger.info(
            "Report for %s fetched after %s attempt(s)", retry.transaction_id, retry.attempt_count
        )

    def _exhaust(self, retry: RetryState) -> None:
        retry.state = FetchState.EXHAUSTED
        exhausted = FetchExhaustedError(retry.transaction_id, retry.attempt_count)
        if self.state.bureau_session is not None:
            self.state.bureau_session.status = BureauSessionStatus.EXPIRED
        self.state.advisory = str(exhausted)
        self.notifier.info(str(exhausted))
        logger.warning(
            "Gave up on %s after %s attempts (last: %s)",
            retry.transaction_id, retry.attempt_count, retry.last_outcome,
        )
