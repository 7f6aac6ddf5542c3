"""Decides, on each page load, which of the flow's entry paths runs."""

import enum
import logging
from typing import Awaitable, Callable, Optional

from creditcheck.flow.api_client import CreditReportApiClient
from creditcheck.flow.cache_checker import ReportCacheChecker
from creditcheck.flow.errors import AuthExpiredError, PendingIntentError
from creditcheck.flow.initiator import ReportRequestInitiator
from creditcheck.flow.intent import PENDING_INTENT_PARAM, CreditCheckRequest, decode_pending_intent
from creditcheck.flow.page import DurableStorage, Navigator
from creditcheck.flow.retrier import TRANSACTION_ID_PARAM, FetchState, ReportFetchRetrier
from creditcheck.flow.state import CreditCheckState

logger = logging.getLogger(__name__)


class LoadPath(str, enum.Enum):
    CALLBACK = "callback"
    RESUME = "resume"
    CACHE_CHECK = "cache_check"
    FORM = "form"


class SessionCorrelator:
    """Routes a page load to the retrier, the initiator or the cache checker.

    Precedence: a bureau callback (``transaction_id``) wins over everything,
    then a restored pending intent for an authenticated user, then the cache
    check on a clean authenticated load. Anything else shows the form.
    """

    def __init__(
        self,
        api: CreditReportApiClient,
        storage: DurableStorage,
        navigator: Navigator,
        state: CreditCheckState,
        cache_checker: ReportCacheChecker,
        initiator: ReportRequestInitiator,
        retrier: ReportFetchRetrier,
        on_auth_expired: Callable[[], Awaitable[None]],
    ):
        self.api = api
        self.storage = storage
        self.navigator = navigator
        self.state = state
        self.cache_checker = cache_checker
        self.initiator = initiator
        self.retrier = retrier
        self.on_auth_expired = on_auth_expired

    def _restore_intent(self) -> Optional[CreditCheckRequest]:
        location = self.navigator.location
        blob = location.get(PENDING_INTENT_PARAM)
        if blob is None:
            return None

        # Strip it whatever happens so a refresh or a shared link can't replay it
        self.navigator.replace(str(location.without(PENDING_INTENT_PARAM)))
        try:
            restored = decode_pending_intent(blob)
        except PendingIntentError as exc:
            logger.warning("Ignoring pending intent: %s", exc)
            return None
        self.state.form = restored
        return restored

    async def on_load(self) -> LoadPath:
        location = self.navigator.location
        transaction_id = location.get(TRANSACTION_ID_PARAM)
        had_blob = location.get(PENDING_INTENT_PARAM) is not None
        restored = self._restore_intent()
        authenticated = bool(self.storage.auth_token())

        if transaction_id:
            self.state.loading_report = False
            if self.retrier.has_run(transaction_id):
                return LoadPath.CALLBACK
            retry = await self.retrier.run(transaction_id)
            if retry is not None and retry.state == FetchState.SUCCESS:
                await self._hydrate()
            return LoadPath.CALLBACK

        if restored is not None and authenticated:
            self.state.loading_report = False
            await self.initiator.submit(restored)
            return LoadPath.RESUME

        if authenticated and not had_blob:
            await self.cache_checker.run()
            return LoadPath.CACHE_CHECK

        self.state.loading_report = False
        return LoadPath.FORM

    async def _hydrate(self) -> None:
        """Swap the fetch summary for the full stored report, when we can."""
        if isinstance(self.state.report, dict) and self.state.report.get("full_report"):
            return
        try:
            self.state.report = await self.api.get_my_report()
        except AuthExpiredError:
            await self.on_auth_expired()
        except Exception as exc:
            logger.warning("Could not load the full report, keeping the summary: %s", exc)
