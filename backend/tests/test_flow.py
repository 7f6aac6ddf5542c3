"""Tests for the page-level flow: cache check, submission, load routing."""

import asyncio
from urllib.parse import urlencode
from unittest.mock import AsyncMock

import pytest

from creditcheck.flow.controller import CreditCheckPage
from creditcheck.flow.correlator import LoadPath
from creditcheck.flow.errors import ApiError, AuthExpiredError, ReportProcessingError
from creditcheck.flow.initiator import SubmitOutcome
from creditcheck.flow.intent import CreditCheckRequest, decode_pending_intent, encode_pending_intent
from creditcheck.flow.page import AUTH_TOKEN_KEY, BrowserNavigator, Location, MemoryStorage, NoticeLog
from creditcheck.flow.retrier import ReportFetchRetrier
from creditcheck.flow.state import BureauSessionStatus

FULL_REPORT = {
    "id": 7,
    "credit_score": 742,
    "full_report": {"credit_report": {"CCRResponse": {"CIRReportDataLst": []}}},
    "history": [],
}


def _page(url="/credit-check", token="jwt", api=None):
    api = api or AsyncMock()
    navigator = BrowserNavigator(url)
    storage = MemoryStorage({AUTH_TOKEN_KEY: token} if token else {})
    notifier = NoticeLog()
    sleep = AsyncMock()
    page = CreditCheckPage(navigator, storage, notifier, api=api)
    page.retrier = ReportFetchRetrier(api, navigator, notifier, page.state, sleep=sleep)
    page.correlator.retrier = page.retrier
    return page, api, navigator, storage, notifier, sleep


class TestCacheChecker:

    @pytest.mark.asyncio
    async def test_cache_hit_short_circuits(self):
        api = AsyncMock()
        api.check_cache.return_value = {"cached": True, "report": {"id": 7}}
        api.get_my_report.return_value = FULL_REPORT
        page, api, *_ = _page(api=api)

        path = await page.mount()

        assert path == LoadPath.CACHE_CHECK
        api.get_my_report.assert_awaited_once()
        api.start_session.assert_not_awaited()
        assert page.state.report == FULL_REPORT
        assert page.state.view == "report"

    @pytest.mark.asyncio
    async def test_cache_miss_shows_form(self):
        api = AsyncMock()
        api.check_cache.return_value = {"cached": False}
        page, api, *_ = _page(api=api)

        await page.mount()

        api.get_my_report.assert_not_awaited()
        assert page.state.view == "form"

    @pytest.mark.asyncio
    async def test_failure_fails_open(self):
        api = AsyncMock()
        api.check_cache.side_effect = ApiError(500, "boom")
        page, api, navigator, storage, notifier, _ = _page(api=api)

        await page.mount()

        assert page.state.view == "form"
        assert notifier.notices == []

    @pytest.mark.asyncio
    async def test_unauthenticated_load_skips_cache(self):
        page, api, *_ = _page(token=None)

        path = await page.mount()

        assert path == LoadPath.FORM
        api.check_cache.assert_not_awaited()
        assert page.state.view == "form"

    @pytest.mark.asyncio
    async def test_expired_token_logs_out(self):
        api = AsyncMock()
        api.check_cache.side_effect = AuthExpiredError()
        page, api, navigator, storage, notifier, _ = _page(api=api)

        await page.mount()

        assert storage.auth_token() is None
        assert navigator.location == Location.parse("/auth?logout=true")
        assert notifier.messages("error") == ["Session expired. Please login again."]


class TestInitiator:

    @pytest.mark.asyncio
    async def test_invalid_form_reports_first_error(self):
        page, api, navigator, storage, notifier, _ = _page()
        page.state.loading_report = False

        outcome = await page.submit("", "", False)

        assert outcome == SubmitOutcome.INVALID
        assert notifier.messages("error") == ["Please enter your name"]
        assert page.state.errors == {"firstName": "Please enter your name"}
        api.start_session.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_logged_out_submit_detours_through_login(self):
        page, api, navigator, storage, notifier, _ = _page(token=None)

        outcome = await page.submit("Asha Rao", "9876543210", True)

        assert outcome == SubmitOutcome.DEFERRED_TO_AUTH
        location = navigator.location
        assert location.path == "/auth"
        assert location.get("redirect") == "/credit-check"
        assert decode_pending_intent(location.get("data")) == CreditCheckRequest("Asha Rao", "9876543210", True)
        assert notifier.messages("info") == ["Please login to continue"]
        api.start_session.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_session_start_navigates_to_bureau(self):
        api = AsyncMock()
        api.start_session.return_value = {
            "success": True,
            "transaction_id": "abc",
            "redirect_url": "https://bureau.example/verify?tid=abc",
        }
        page, api, navigator, storage, notifier, _ = _page(api=api)

        outcome = await page.submit("Asha Rao", "9876543210", True)
        await page.close()

        assert outcome == SubmitOutcome.REDIRECTED
        api.start_session.assert_awaited_once_with("Asha Rao", "9876543210")
        api.capture_lead.assert_awaited_once()
        assert navigator.left_app_to == "https://bureau.example/verify?tid=abc"
        assert page.state.bureau_session.status == BureauSessionStatus.REDIRECTED
        assert notifier.messages("success") == ["Redirecting to verification..."]

    @pytest.mark.asyncio
    async def test_lead_capture_failure_is_ignored(self):
        api = AsyncMock()
        api.capture_lead.side_effect = ApiError(500, "db down")
        api.start_session.return_value = {"success": True, "redirect_url": "https://bureau.example/v"}
        page, api, navigator, storage, notifier, _ = _page(api=api)

        outcome = await page.submit("Asha Rao", "9876543210", True)
        await page.close()

        assert outcome == SubmitOutcome.REDIRECTED
        assert notifier.messages("error") == []

    @pytest.mark.asyncio
    async def test_session_failure_resets_submit(self):
        api = AsyncMock()
        api.start_session.side_effect = ApiError(502, "Failed to start verification. Please try again.")
        page, api, navigator, storage, notifier, _ = _page(api=api)

        outcome = await page.submit("Asha Rao", "9876543210", True)
        await page.close()

        assert outcome == SubmitOutcome.FAILED
        assert page.state.is_submitting is False
        assert notifier.messages("error") == ["Failed to start verification. Please try again."]
        assert navigator.left_app_to is None

    @pytest.mark.asyncio
    async def test_missing_redirect_url_is_a_failure(self):
        api = AsyncMock()
        api.start_session.return_value = {"success": False, "message": "nope"}
        page, api, navigator, storage, notifier, _ = _page(api=api)

        outcome = await page.submit("Asha Rao", "9876543210", True)
        await page.close()

        assert outcome == SubmitOutcome.FAILED
        assert notifier.messages("error") == ["Failed to start session. Please try again."]

    @pytest.mark.asyncio
    async def test_duplicate_submit_is_ignored(self):
        gate = asyncio.Event()

        async def slow_start(*args):
            await gate.wait()
            return {"success": True, "redirect_url": "https://bureau.example/v"}

        api = AsyncMock()
        api.start_session.side_effect = slow_start
        page, api, *_ = _page(api=api)

        first = asyncio.create_task(page.submit("Asha Rao", "9876543210", True))
        await asyncio.sleep(0)
        second = await page.submit("Asha Rao", "9876543210", True)
        gate.set()
        await first
        await page.close()

        assert second == SubmitOutcome.IGNORED
        assert api.start_session.await_count == 1


class TestLoadRouting:

    @pytest.mark.asyncio
    async def test_pending_intent_is_restored_and_stripped(self):
        blob = encode_pending_intent(CreditCheckRequest("Asha Rao", "9876543210", True))
        page, api, navigator, *_ = _page(url="/credit-check?" + urlencode({"data": blob}), token=None)

        path = await page.mount()

        assert path == LoadPath.FORM
        assert page.state.form == CreditCheckRequest("Asha Rao", "9876543210", True)
        assert navigator.location.get("data") is None
        api.start_session.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_authenticated_resume_resubmits(self):
        blob = encode_pending_intent(CreditCheckRequest("Asha Rao", "9876543210", True))
        api = AsyncMock()
        api.start_session.return_value = {"success": True, "redirect_url": "https://bureau.example/v"}
        page, api, navigator, *_ = _page(url="/credit-check?" + urlencode({"data": blob}), api=api)

        path = await page.mount()
        await page.close()

        assert path == LoadPath.RESUME
        api.check_cache.assert_not_awaited()
        api.start_session.assert_awaited_once_with("Asha Rao", "9876543210")
        assert navigator.left_app_to == "https://bureau.example/v"

    @pytest.mark.asyncio
    async def test_malformed_blob_is_ignored(self):
        page, api, navigator, *_ = _page(url="/credit-check?data=%%%")

        path = await page.mount()

        assert path == LoadPath.FORM
        assert navigator.location.get("data") is None
        api.check_cache.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_callback_wins_over_cache_and_resume(self):
        blob = encode_pending_intent(CreditCheckRequest("Asha Rao", "9876543210", True))
        api = AsyncMock()
        api.fetch_report_by_transaction.return_value = FULL_REPORT
        page, api, *_ = _page(url="/credit-check?" + urlencode({"transaction_id": "abc", "data": blob}), api=api)

        path = await page.mount()

        assert path == LoadPath.CALLBACK
        api.check_cache.assert_not_awaited()
        api.start_session.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_summary_is_hydrated_after_fetch(self):
        api = AsyncMock()
        api.fetch_report_by_transaction.return_value = {"id": 7, "credit_score": 742}
        api.get_my_report.return_value = FULL_REPORT
        page, api, *_ = _page(url="/credit-check?transaction_id=abc", api=api)

        await page.mount()

        assert page.state.report == FULL_REPORT

    @pytest.mark.asyncio
    async def test_remount_with_same_transaction_does_not_refetch(self):
        api = AsyncMock()
        api.fetch_report_by_transaction.return_value = FULL_REPORT
        page, api, navigator, *_ = _page(url="/credit-check?transaction_id=abc", api=api)

        await page.mount()
        navigator.replace("/credit-check?transaction_id=abc")
        await page.mount()

        assert api.fetch_report_by_transaction.await_count == 1


class TestEndToEnd:
    """Asha Rao submits, visits the bureau, comes back and sees her report."""

    @pytest.mark.asyncio
    async def test_submit_redirect_return_and_fetch(self):
        api = AsyncMock()
        api.start_session.return_value = {
            "success": True,
            "transaction_id": "abc",
            "redirect_url": "https://bureau.example/verify?tid=abc",
        }
        page, api, navigator, storage, notifier, sleep = _page(api=api)
        page.state.loading_report = False

        outcome = await page.submit("Asha Rao", "9876543210", True)
        await page.close()
        assert outcome == SubmitOutcome.REDIRECTED
        assert navigator.left_app_to == "https://bureau.example/verify?tid=abc"

        # The browser comes back on a fresh page; only storage survives
        api.fetch_report_by_transaction.side_effect = [
            ReportProcessingError(202, "processing"),
            ApiError(502, "bad gateway"),
            FULL_REPORT,
        ]
        returned, _, navigator, _, notifier, sleep = _page(
            url="/credit-check?transaction_id=abc", token=storage.auth_token(), api=api,
        )

        path = await returned.mount()

        assert path == LoadPath.CALLBACK
        assert api.fetch_report_by_transaction.await_count == 3
        assert sleep.await_count == 2
        assert returned.state.view == "report"
        assert returned.state.report == FULL_REPORT
        assert navigator.location.get("transaction_id") is None
        assert str(navigator.location) == "/credit-check"
        assert notifier.messages("success") == ["CIBIL report generated successfully"]


class TestPdfDownload:

    @pytest.mark.asyncio
    async def test_opens_pdf_url(self):
        api = AsyncMock()
        api.get_report_pdf_link.return_value = {"success": True, "url": "http://files/report.pdf"}
        page, api, navigator, *_ = _page(api=api)

        await page.download_pdf()

        assert navigator.opened == ["http://files/report.pdf"]
        assert page.state.is_downloading_pdf is False

    @pytest.mark.asyncio
    async def test_processing_is_informational(self):
        api = AsyncMock()
        api.get_report_pdf_link.return_value = {"success": False, "status": "PROCESSING"}
        page, api, navigator, storage, notifier, _ = _page(api=api)

        await page.download_pdf()

        assert notifier.messages("info") == ["PDF is being generated. Please try again in a moment."]

    @pytest.mark.asyncio
    async def test_missing_report(self):
        api = AsyncMock()
        api.get_report_pdf_link.side_effect = ApiError(404, "Report not found")
        page, api, navigator, storage, notifier, _ = _page(api=api)

        await page.download_pdf()

        assert notifier.messages("error") == ["Report not found"]
