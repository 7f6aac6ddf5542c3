"""Abstract credit bureau adapter, its errors, and the factory."""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Dict, Any, Optional

from creditcheck.config import settings


class BureauError(Exception):
    """The bureau call failed (transport, credentials, unexpected payload)."""

    def __init__(self, message: str, *, status_code: Optional[int] = None, payload: Any = None):
        super().__init__(message)
        self.status_code = status_code
        self.payload = payload


class BureauNotConfiguredError(BureauError):
    pass


class ReportNotReadyError(BureauError):
    """The transaction exists but the bureau has not finished generating the report."""


@dataclass
class BureauSession:
    """Result of starting a verification session with the bureau."""
    redirect_url: str
    transaction_id: Optional[str] = None
    session_data: Dict[str, Any] = field(default_factory=dict)


class CreditBureauAdapter(ABC):
    """Abstract interface for credit bureau integrations."""

    @property
    @abstractmethod
    def provider_name(self) -> str:
        """Name of the credit bureau provider."""
        ...

    @abstractmethod
    async def create_session(self, first_name: str, mobile_number: str) -> BureauSession:
        """Start an identity-verification session.

        The user is sent to ``redirect_url``; the bureau later redirects back to
        the configured callback with ``transaction_id`` appended.
        Raises BureauError on failure.
        """
        ...

    @abstractmethod
    async def fetch_report(self, transaction_id: str) -> Dict[str, Any]:
        """Fetch the report generated for ``transaction_id``.

        Returns a dict containing at minimum:
        - credit_score: str | int
        - credit_report: nested ``CCRResponse`` structure
        - name, mobile, pan: subject identity as reported
        - pdf_url: str | None

        Raises ReportNotReadyError while the report is still being generated
        and BureauError for every other failure.
        """
        ...

    @abstractmethod
    async def download_pdf(self, pdf_url: str) -> bytes:
        """Download the bureau-hosted PDF rendition."""
        ...

    @abstractmethod
    async def check_health(self) -> bool:
        """Check if the bureau API is reachable."""
        ...


def get_credit_bureau() -> CreditBureauAdapter:
    """Factory function that returns the configured credit bureau adapter."""
    provider = settings.credit_bureau_provider.lower()

    if provider == "deepvue":
        from creditcheck.services.credit_bureau.deepvue import DeepVueAdapter
        return DeepVueAdapter.shared()
    else:
        from creditcheck.services.credit_bureau.mock_bureau import MockBureauAdapter
        return MockBureauAdapter()
