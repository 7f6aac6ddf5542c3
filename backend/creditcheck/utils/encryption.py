"""At-rest encryption for bureau data: subject PAN, mobile, name and the raw report.

Values are Fernet tokens. The key is ``REPORT_ENCRYPTION_KEY`` or, when that
is unset, a key derived from ``SECRET_KEY``.
"""

import base64
import hashlib
import json
import logging
from typing import Any, Optional

from cryptography.fernet import Fernet, InvalidToken
from sqlalchemy import Text
from sqlalchemy.types import TypeDecorator

from creditcheck.config import settings

logger = logging.getLogger(__name__)


def _fernet() -> Fernet:
    key = settings.report_encryption_key
    if not key:
        key = base64.urlsafe_b64encode(hashlib.sha256(settings.secret_key.encode()).digest()).decode()
    return Fernet(key)


def encrypt_text(value: Optional[str]) -> Optional[str]:
    if value is None:
        return None
    return _fernet().encrypt(value.encode()).decode()


def decrypt_text(value: Optional[str]) -> Optional[str]:
    """Plaintext rows written before encryption are passed through unchanged."""
    if value is None:
        return None
    try:
        return _fernet().decrypt(value.encode()).decode()
    except InvalidToken:
        logger.warning("Stored value is not a valid token for the current key; returning it as stored")
        return value


class EncryptedString(TypeDecorator):
    """String column stored as a Fernet token."""

    impl = Text
    cache_ok = True

    def process_bind_param(self, value: Optional[str], dialect) -> Optional[str]:
        return encrypt_text(value)

    def process_result_value(self, value: Optional[str], dialect) -> Optional[str]:
        return decrypt_text(value)


class EncryptedJSON(TypeDecorator):
    """JSON document serialised then stored as a single Fernet token."""

    impl = Text
    cache_ok = True

    def process_bind_param(self, value: Any, dialect) -> Optional[str]:
        if value is None:
            return None
        return encrypt_text(json.dumps(value))

    def process_result_value(self, value: Optional[str], dialect) -> Any:
        if value is None:
            return None
        return json.loads(decrypt_text(value))
