"""The credit-check page: wires the flow components to one set of seams."""

import logging
from typing import Optional

import httpx

from creditcheck.config import settings
from creditcheck.flow.api_client import CreditReportApiClient
from creditcheck.flow.cache_checker import ReportCacheChecker
from creditcheck.flow.correlator import LoadPath, SessionCorrelator
from creditcheck.flow.errors import ApiError, AuthExpiredError
from creditcheck.flow.initiator import ReportRequestInitiator, SubmitOutcome
from creditcheck.flow.intent import CreditCheckRequest
from creditcheck.flow.page import AUTH_TOKEN_KEY, DurableStorage, Navigator, Notifier
from creditcheck.flow.presenter import ReportView, present_report
from creditcheck.flow.retrier import ReportFetchRetrier
from creditcheck.flow.state import CreditCheckState

logger = logging.getLogger(__name__)


class CreditCheckPage:
    """One page lifecycle.

    Usage::

        page = CreditCheckPage(navigator, storage, notifier)
        await page.mount()
        if page.state.view == "form":
            await page.submit("Asha Rao", "9876543210", True)
    """

    def __init__(
        self,
        navigator: Navigator,
        storage: DurableStorage,
        notifier: Notifier,
        api: Optional[CreditReportApiClient] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        retrier: Optional[ReportFetchRetrier] = None,
    ):
        self.navigator = navigator
        self.storage = storage
        self.notifier = notifier
        self.state = CreditCheckState()
        self.api = api or CreditReportApiClient(storage, transport=transport)

        self.cache_checker = ReportCacheChecker(self.api, self.state, self.handle_auth_expired)
        self.initiator = ReportRequestInitiator(
            self.api, storage, navigator, notifier, self.state, self.handle_auth_expired,
        )
        self.retrier = retrier or ReportFetchRetrier(self.api, navigator, notifier, self.state)
        self.correlator = SessionCorrelator(
            self.api, storage, navigator, self.state,
            self.cache_checker, self.initiator, self.retrier, self.handle_auth_expired,
        )

    async def mount(self) -> LoadPath:
        path = await self.correlator.on_load()
        logger.debug("Credit check page mounted via %s, view=%s", path.value, self.state.view)
        return path

    async def submit(self, first_name: str, mobile_number: str, consent: bool) -> SubmitOutcome:
        request = CreditCheckRequest.from_input(first_name, mobile_number, consent)
        return await self.initiator.submit(request)

    async def download_pdf(self) -> None:
        if self.state.is_downloading_pdf:
            return
        self.state.is_downloading_pdf = True
        try:
            result = await self.api.get_report_pdf_link()
            if result.get("success") and result.get("url"):
                self.navigator.open(result["url"])
            elif result.get("status") == "PROCESSING":
                self.notifier.info("PDF is being generated. Please try again in a moment.")
            else:
                self.notifier.error("PDF not available")
        except AuthExpiredError:
            await self.handle_auth_expired()
        except ApiError as exc:
            logger.warning("PDF link request failed: %s", exc)
            if exc.status_code == 404:
                self.notifier.error("Report not found")
            else:
                self.notifier.error("Failed to download PDF")
        except httpx.HTTPError as exc:
            logger.warning("PDF link request failed: %s", exc)
            self.notifier.error("Failed to download PDF")
        finally:
            self.state.is_downloading_pdf = False

    async def handle_auth_expired(self) -> None:
        self.storage.remove(AUTH_TOKEN_KEY)
        self.notifier.error(AuthExpiredError().message)
        self.navigator.push(f"{settings.auth_path}?logout=true")

    def report_view(self) -> Optional[ReportView]:
        if self.state.report is None:
            return None
        return present_report(self.state.report)

    async def close(self) -> None:
        await self.initiator.wait_background()
