"""Clean-load path: show the cached report instead of the form when one exists."""

import logging
from typing import Awaitable, Callable, Optional

from creditcheck.flow.api_client import CreditReportApiClient
from creditcheck.flow.errors import AuthExpiredError, CacheCheckError
from creditcheck.flow.state import CreditCheckState

logger = logging.getLogger(__name__)


class ReportCacheChecker:
    """Fail-open: any failure means "show the form"."""

    def __init__(
        self,
        api: CreditReportApiClient,
        state: CreditCheckState,
        on_auth_expired: Callable[[], Awaitable[None]],
    ):
        self.api = api
        self.state = state
        self.on_auth_expired = on_auth_expired

    async def _lookup(self) -> Optional[dict]:
        try:
            cache = await self.api.check_cache()
            if not cache.get("cached"):
                return None
            return await self.api.get_my_report()
        except AuthExpiredError:
            raise
        except Exception as exc:
            raise CacheCheckError(str(exc)) from exc

    async def run(self) -> bool:
        """Return True when a cached report was loaded into the report slot."""
        try:
            report = await self._lookup()
        except AuthExpiredError:
            await self.on_auth_expired()
            return False
        except CacheCheckError as exc:
            logger.warning("Cache check failed, showing the form: %s", exc)
            return False
        finally:
            self.state.loading_report = False

        if report is None:
            return False
        self.state.report = report
        logger.info("Loaded cached credit report")
        return True
