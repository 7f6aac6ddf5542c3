"""In-memory state of one credit-check page lifecycle."""

import enum
from dataclasses import dataclass, field
from typing import Any, Optional

from creditcheck.flow.intent import CreditCheckRequest


class BureauSessionStatus(str, enum.Enum):
    PENDING = "pending"
    REDIRECTED = "redirected"
    COMPLETED = "completed"
    EXPIRED = "expired"


@dataclass
class BureauSession:
    """One bureau round trip, as far as this page can see it."""
    transaction_id: Optional[str]
    redirect_url: Optional[str] = None
    status: BureauSessionStatus = BureauSessionStatus.PENDING


@dataclass
class CreditCheckState:
    form: CreditCheckRequest = field(default_factory=CreditCheckRequest)
    errors: dict[str, str] = field(default_factory=dict)
    is_submitting: bool = False
    is_downloading_pdf: bool = False

    # The one slot both entry paths write to
    report: Optional[dict[str, Any]] = None

    loading_report: bool = True
    fetching_report: bool = False
    retry_count: int = 0
    advisory: Optional[str] = None

    bureau_session: Optional[BureauSession] = None

    @property
    def view(self) -> str:
        """Which screen the page shows: ``loading``, ``report`` or ``form``."""
        if self.loading_report or self.fetching_report:
            return "loading"
        if self.report is not None:
            return "report"
        return "form"
