"""The credit-check form and its pending-intent encoding.

When the user submits while logged out, the form is serialised to JSON,
base64-encoded and carried through the login redirect in the ``data``
query parameter. After login the flow decodes it and picks up where the
user left off.
"""

import base64
import binascii
import json
from dataclasses import dataclass
from urllib.parse import urlencode

from creditcheck.flow.errors import PendingIntentError, ValidationError
from creditcheck.utils.validators import NAME_PATTERN, is_valid_mobile, sanitize_name

PENDING_INTENT_PARAM = "data"


@dataclass
class CreditCheckRequest:
    first_name: str = ""
    mobile_number: str = ""
    consent: bool = False

    def validate(self) -> None:
        """Raise ValidationError for the first failing field."""
        name = self.first_name.strip()
        if not name:
            raise ValidationError("firstName", "Please enter your name")
        if not NAME_PATTERN.match(name):
            raise ValidationError("firstName", "Name should contain only letters")

        if not self.mobile_number.strip():
            raise ValidationError("mobileNumber", "Please enter mobile number")
        if not is_valid_mobile(self.mobile_number):
            raise ValidationError("mobileNumber", "Please enter a valid mobile number")

        if self.consent is not True:
            raise ValidationError("consent", "You must agree to the terms")

    def to_payload(self) -> dict:
        return {
            "firstName": self.first_name,
            "mobileNumber": self.mobile_number,
            "consent": self.consent,
        }

    @classmethod
    def from_payload(cls, payload: dict) -> "CreditCheckRequest":
        return cls(
            first_name=str(payload.get("firstName") or ""),
            mobile_number=str(payload.get("mobileNumber") or ""),
            consent=payload.get("consent") is True,
        )

    @classmethod
    def from_input(cls, first_name: str, mobile_number: str, consent: bool) -> "CreditCheckRequest":
        """Apply the input filters: letters/spaces in the name, digits in the mobile."""
        return cls(
            first_name=sanitize_name(first_name),
            mobile_number="".join(ch for ch in mobile_number if ch.isdigit()),
            consent=consent,
        )


def encode_pending_intent(request: CreditCheckRequest) -> str:
    raw = json.dumps(request.to_payload(), separators=(",", ":"))
    return base64.b64encode(raw.encode("utf-8")).decode("ascii")


def decode_pending_intent(blob: str) -> CreditCheckRequest:
    try:
        raw = base64.b64decode(blob.encode("ascii"), validate=True)
        payload = json.loads(raw.decode("utf-8"))
    except (binascii.Error, UnicodeError, ValueError) as exc:
        raise PendingIntentError(f"Malformed pending intent: {exc}") from exc
    if not isinstance(payload, dict):
        raise PendingIntentError("Pending intent is not an object")
    return CreditCheckRequest.from_payload(payload)


def build_auth_redirect(request: CreditCheckRequest, auth_path: str, return_path: str) -> str:
    """``/auth?redirect=<return_path>&data=<blob>``"""
    query = urlencode({"redirect": return_path, PENDING_INTENT_PARAM: encode_pending_intent(request)})
    return f"{auth_path}?{query}"
