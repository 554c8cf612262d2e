"""Request-scoped authentication state.

``AuthContext`` is the only writer of the session keys in ``SessionStorage``.
It is built once per request, initialized asynchronously from storage, and then
read synchronously by the dispatcher and the route guard.
"""

import json
import logging
from collections.abc import Mapping
from typing import Any

from starlette.concurrency import run_in_threadpool

from .config import settings
from .models import UserType
from .security import DecodeFailure, decode_token_claims
from .storage import SESSION_KEYS, TOKEN_KEY, USER_KEY, USER_TYPE_KEY, SessionStorage


logger = logging.getLogger(__name__)


def infer_user_type(user: Mapping[str, Any], *, consult_type_field: bool = False) -> UserType:
    """Guess a role from backend user fields when the token says nothing."""
    declared = user.get("type") if consult_type_field else None
    if declared == "student" or user.get("studentId"):
        return UserType.STUDENT
    if declared == "school" or user.get("schoolId"):
        return UserType.SCHOOL
    if declared == "parent":
        return UserType.PARENT
    logger.warning("No role hint on user record; defaulting to admin")
    return UserType.ADMIN


def resolve_user_type(token: str, user: Mapping[str, Any], *, consult_type_field: bool = False) -> UserType:
    claims = decode_token_claims(token)
    if isinstance(claims, DecodeFailure):
        logger.info(f"Token payload not readable ({claims.reason}); inspecting user record")
        return infer_user_type(user, consult_type_field=consult_type_field)
    return claims.user_type()


class AuthContext:
    def __init__(self, storage: SessionStorage, *, enforce_expiry: bool | None = None):
        self.storage = storage
        self.enforce_expiry = settings.enforce_token_expiry if enforce_expiry is None else enforce_expiry
        self.user: dict[str, Any] | None = None
        self.token: str | None = None
        self.loading = True

    @property
    def is_authenticated(self) -> bool:
        return bool(self.token)

    @property
    def user_type(self) -> UserType | None:
        return self.get_user_type()

    async def initialize(self) -> None:
        try:
            stored_token, stored_user = await run_in_threadpool(self._read_stored_session)
            if stored_token and stored_user:
                await run_in_threadpool(self._restore, stored_token, stored_user)
        finally:
            self.loading = False

    def _read_stored_session(self) -> tuple[str | None, str | None]:
        return self.storage.get_item(TOKEN_KEY), self.storage.get_item(USER_KEY)

    def _restore(self, token: str, raw_user: str) -> None:
        try:
            user = json.loads(raw_user)
        except ValueError:
            user = None
        if not isinstance(user, dict):
            logger.warning("Stored user record is not valid JSON object; clearing session")
            self.storage.remove_items(SESSION_KEYS)
            return

        claims = decode_token_claims(token)
        if self.enforce_expiry and not isinstance(claims, DecodeFailure) and claims.is_expired():
            logger.info("Stored session token has expired; clearing session")
            self.storage.remove_items(SESSION_KEYS)
            return

        if UserType.parse(user.get("userType")) is None:
            if isinstance(claims, DecodeFailure):
                user_type = infer_user_type(user)
            else:
                user_type = claims.user_type()
            user["userType"] = user_type.value
            self.storage.set_items({USER_KEY: json.dumps(user), USER_TYPE_KEY: user_type.value})

        self.token = token
        self.user = user

    def login(self, user_record: Mapping[str, Any], token: str) -> UserType:
        user_type = resolve_user_type(token, user_record, consult_type_field=True)
        user = {**user_record, "userType": user_type.value}
        self.storage.set_items(
            {TOKEN_KEY: token, USER_KEY: json.dumps(user), USER_TYPE_KEY: user_type.value}
        )
        self.user = user
        self.token = token
        return user_type

    def logout(self) -> None:
        self.user = None
        self.token = None
        self.storage.remove_items(SESSION_KEYS)

    def update_user(self, user_record: Mapping[str, Any]) -> None:
        user = dict(user_record)
        self.storage.set_item(USER_KEY, json.dumps(user))
        self.user = user

    def get_user_type(self) -> UserType | None:
        if self.user is None:
            return None
        stored = UserType.parse(self.user.get("userType"))
        if stored is not None:
            return stored
        if self.user.get("studentId"):
            return UserType.STUDENT
        if self.user.get("schoolId"):
            return UserType.SCHOOL
        return UserType.ADMIN
