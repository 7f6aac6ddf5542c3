"""Tests for the report presenter."""

import pytest

from creditcheck.flow.presenter import (
    HISTORY_MONTHS,
    NO_DATA,
    PaymentBucket,
    account_category,
    classify_payment_status,
    format_amount,
    mask_account_number,
    present_report,
)


def _report(accounts=None, personal=None, **extra):
    cir = {
        "IDAndContactInfo": {
            "PersonalInfo": personal if personal is not None else {
                "Name": {"FullName": "ASHA RAO"},
                "DateOfBirth": "1990-04-12",
                "Gender": "Female",
            },
            "IdentityInfo": {"PANId": [{"seq": "1", "IdNumber": "ABCDE1234F"}]},
            "PhoneInfo": [{"seq": "1", "typeCode": "M", "Number": "9876543210"}],
        },
        "RetailAccountDetails": accounts if accounts is not None else [],
        "ScoreDetails": [{"Type": "ERS", "Value": "742"}],
    }
    report = {
        "full_report": {"credit_report": {"CCRResponse": {"CIRReportDataLst": [{"CIRReportData": cir}]}}},
    }
    report.update(extra)
    return report


class TestClassification:

    @pytest.mark.parametrize("status,bucket", [
        ("000", PaymentBucket.GOOD),
        ("STD", PaymentBucket.GOOD),
        ("XXX", PaymentBucket.GOOD),
        ("NEW", PaymentBucket.NEW),
        ("CLSD", PaymentBucket.CLOSED),
        ("015", PaymentBucket.DPD_1_30),
        ("030", PaymentBucket.DPD_1_30),
        ("045", PaymentBucket.DPD_31_60),
        ("060", PaymentBucket.DPD_31_60),
        ("090", PaymentBucket.DPD_61_PLUS),
        ("SUB", PaymentBucket.WRITTEN_OFF),
        ("DBT", PaymentBucket.WRITTEN_OFF),
        ("LSS", PaymentBucket.WRITTEN_OFF),
        ("ZZZ", PaymentBucket.UNKNOWN),
        ("", PaymentBucket.UNKNOWN),
        (None, PaymentBucket.UNKNOWN),
    ])
    def test_buckets(self, status, bucket):
        assert classify_payment_status(status) == bucket


class TestHelpers:

    def test_amounts(self):
        assert format_amount("125000") == "₹125,000"
        assert format_amount(None) == NO_DATA
        assert format_amount("abc") == NO_DATA

    def test_masking(self):
        assert mask_account_number("XXXX123456") == "******3456"
        assert mask_account_number(None) == NO_DATA

    def test_categories(self):
        assert account_category("Housing Loan") == "home"
        assert account_category("Auto Loan") == "auto"
        assert account_category("Education Loan") == "education"
        assert account_category("Business Loan") == "business"
        assert account_category("Credit Card") == "card_or_other"


class TestPresentReport:

    def test_full_report(self):
        account = {
            "Institution": "HDFC Bank",
            "AccountType": "Credit Card",
            "AccountNumber": "XXXX123456",
            "CurrentBalance": "42000",
            "PastDueAmount": "1500",
            "AccountStatus": "Current Account",
            "DateOpened": "2019-01-05",
            "History48Months": [
                {"key": "10-26", "PaymentStatus": "000"},
                {"key": "09-26", "PaymentStatus": "045"},
            ],
        }
        view = present_report(_report([account], history=[{"month": "Oct", "score": 742}]))

        assert view.credit_score == "742"
        assert view.personal_info.full_name == "ASHA RAO"
        assert view.personal_info.pan == "ABCDE1234F"
        assert view.personal_info.mobile == "9876543210"
        assert view.score_history == [("Oct", 742)]

        card = view.accounts[0]
        assert card.is_active and card.is_overdue
        assert card.masked_number == "******3456"
        assert card.past_due == "₹1,500"
        assert len(card.history) == HISTORY_MONTHS
        assert card.history[0].bucket == PaymentBucket.GOOD
        assert card.history[1].bucket == PaymentBucket.DPD_31_60
        assert card.history[2].bucket == PaymentBucket.UNKNOWN

    def test_closed_account(self):
        account = {"AccountStatus": "Closed", "PastDueAmount": "0", "DateClosed": "2023-03-01"}
        view = present_report(_report([account]))

        assert view.accounts[0].is_active is False
        assert view.accounts[0].is_overdue is False
        assert view.accounts[0].institution == NO_DATA

    def test_missing_personal_info_uses_placeholders(self):
        view = present_report(_report(personal={}))

        assert view.personal_info.full_name == NO_DATA
        assert view.personal_info.date_of_birth == NO_DATA

    @pytest.mark.parametrize("report", [
        None,
        {},
        {"full_report": None},
        {"full_report": {"credit_report": {"CCRResponse": {"CIRReportDataLst": []}}}},
        {"full_report": {"credit_report": "garbage"}},
    ])
    def test_absent_paths_never_raise(self, report):
        view = present_report(report)

        assert view.credit_score == NO_DATA
        assert view.accounts == []
        assert view.personal_info.full_name == NO_DATA

    def test_summary_fields_fill_gaps(self):
        view = present_report({"credit_score": 701, "subject_name": "Asha Rao"})

        assert view.credit_score == "701"
        assert view.personal_info.full_name == "Asha Rao"
