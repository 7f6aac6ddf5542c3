"""Tests for the bounded report-fetch retrier."""

import asyncio
from unittest.mock import AsyncMock

import httpx
import pytest

from creditcheck.flow.errors import ApiError, ReportProcessingError
from creditcheck.flow.page import BrowserNavigator, NoticeLog
from creditcheck.flow.retrier import FetchState, ReportFetchRetrier
from creditcheck.flow.state import BureauSession, BureauSessionStatus, CreditCheckState

REPORT = {"id": 1, "credit_score": 742}


def _retrier(side_effect, url="/credit-check?transaction_id=abc"):
    api = AsyncMock()
    api.fetch_report_by_transaction = AsyncMock(side_effect=side_effect)
    sleep = AsyncMock()
    navigator = BrowserNavigator(url)
    notifier = NoticeLog()
    state = CreditCheckState()
    retrier = ReportFetchRetrier(
        api, navigator, notifier, state, max_attempts=5, delay_seconds=5.0, sleep=sleep,
    )
    return retrier, api, sleep, navigator, notifier, state


class TestBoundedRetry:
    """Failures are counted; a non-empty payload ends the sequence."""

    @pytest.mark.asyncio
    async def test_three_failures_then_success(self):
        retrier, api, sleep, navigator, notifier, state = _retrier([
            httpx.ConnectError("boom"),
            ReportProcessingError(202, "processing"),
            ApiError(500, "server error"),
            REPORT,
        ])

        result = await retrier.run("abc")

        assert result.state == FetchState.SUCCESS
        assert result.attempt_count == 4
        assert api.fetch_report_by_transaction.await_count == 4
        assert sleep.await_count == 3
        assert all(call.args == (5.0,) for call in sleep.await_args_list)
        assert state.report == REPORT
        assert state.fetching_report is False
        assert navigator.location.get("transaction_id") is None
        assert notifier.messages("success") == ["CIBIL report generated successfully"]

    @pytest.mark.asyncio
    async def test_first_attempt_success_never_sleeps(self):
        retrier, api, sleep, *_ = _retrier([REPORT])

        result = await retrier.run("abc")

        assert result.attempt_count == 1
        sleep.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_empty_payload_counts_as_failure(self):
        retrier, api, sleep, *_ = _retrier([{}, None, REPORT])

        result = await retrier.run("abc")

        assert result.state == FetchState.SUCCESS
        assert result.attempt_count == 3


class TestExhaustion:

    @pytest.mark.asyncio
    async def test_five_failures_exhaust_without_sixth_call(self):
        retrier, api, sleep, navigator, notifier, state = _retrier(
            [ApiError(502, "bad gateway")] * 6
        )
        state.bureau_session = BureauSession(transaction_id="abc")

        result = await retrier.run("abc")

        assert result.state == FetchState.EXHAUSTED
        assert result.attempt_count == 5
        assert api.fetch_report_by_transaction.await_count == 5
        assert sleep.await_count == 4
        assert state.report is None
        assert state.fetching_report is False
        assert state.bureau_session.status == BureauSessionStatus.EXPIRED
        assert "still being processed" in state.advisory
        assert notifier.messages("info") == [state.advisory]
        assert notifier.messages("error") == []


class TestIdempotence:

    @pytest.mark.asyncio
    async def test_same_transaction_runs_once(self):
        retrier, api, *_ = _retrier([REPORT, REPORT])

        first = await retrier.run("abc")
        second = await retrier.run("abc")

        assert first.state == FetchState.SUCCESS
        assert second is None
        assert api.fetch_report_by_transaction.await_count == 1
        assert retrier.has_run("abc")

    @pytest.mark.asyncio
    async def test_concurrent_runs_poll_once(self):
        retrier, api, sleep, *_ = _retrier([httpx.ConnectError("boom"), REPORT, REPORT])

        results = await asyncio.gather(retrier.run("abc"), retrier.run("abc"))

        finished = [r for r in results if r is not None]
        assert len(finished) == 1
        assert finished[0].state == FetchState.SUCCESS
        assert api.fetch_report_by_transaction.await_count == 2
        assert sleep.await_count == 1

    @pytest.mark.asyncio
    async def test_never_starts_a_bureau_session(self):
        retrier, api, *_ = _retrier([REPORT])

        await retrier.run("abc")

        api.start_session.assert_not_awaited()
