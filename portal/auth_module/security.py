import json
import logging
import time
from dataclasses import dataclass, field
from typing import Any, Union

from jwt.utils import base64url_decode

from .models import UserType


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TokenClaims:
    payload: dict[str, Any] = field(default_factory=dict)

    @property
    def type(self) -> Any:
        return self.payload.get("type")

    @property
    def role(self) -> Any:
        return self.payload.get("role")

    @property
    def subject(self) -> Any:
        return self.payload.get("sub")

    @property
    def exp(self) -> float | None:
        value = self.payload.get("exp")
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            return None
        return float(value)

    def is_expired(self, now: float | None = None) -> bool:
        if self.exp is None:
            return False
        return self.exp <= (time.time() if now is None else now)

    def user_type(self) -> UserType:
        if self.type == "student":
            return UserType.STUDENT
        if self.type == "school":
            return UserType.SCHOOL
        if self.type == "parent":
            return UserType.PARENT
        if self.role == "admin" or self.type == "admin":
            return UserType.ADMIN
        logger.warning("Token payload carries no known type or role; defaulting to admin")
        return UserType.ADMIN


@dataclass(frozen=True)
class DecodeFailure:
    reason: str


DecodeResult = Union[TokenClaims, DecodeFailure]


def decode_token_claims(token: str | None) -> DecodeResult:
    """Read the payload segment of a JWT-shaped token without verifying it.

    The portal only needs the role hint; the backend authorizes every data
    call on its own. Never raises.
    """
    if not token or not isinstance(token, str):
        return DecodeFailure("missing token")
    parts = token.split(".")
    if len(parts) != 3:
        return DecodeFailure(f"expected 3 segments, got {len(parts)}")
    try:
        payload = json.loads(base64url_decode(parts[1].encode("ascii")))
    except ValueError as exc:
        return DecodeFailure(f"unreadable payload: {exc}")
    if not isinstance(payload, dict):
        return DecodeFailure("payload is not an object")
    return TokenClaims(payload=payload)
