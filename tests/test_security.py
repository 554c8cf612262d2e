"""Tests for reading role hints out of bearer tokens."""

from __future__ import annotations

import base64
import json
import time

from conftest import make_token

from portal.auth_module.models import UserType
from portal.auth_module.security import DecodeFailure, TokenClaims, decode_token_claims


def _unsigned(payload: object) -> str:
    body = base64.urlsafe_b64encode(json.dumps(payload).encode()).rstrip(b"=").decode()
    return f"eyJhbGciOiJub25lIn0.{body}.sig"


class TestDecodeTokenClaims:
    def test_reads_payload_without_verifying(self) -> None:
        claims = decode_token_claims(make_token(type="student"))
        assert isinstance(claims, TokenClaims)
        assert claims.type == "student"
        assert claims.subject == "42"

    def test_signature_is_not_checked(self) -> None:
        claims = decode_token_claims(_unsigned({"type": "parent"}))
        assert isinstance(claims, TokenClaims)
        assert claims.user_type() is UserType.PARENT

    def test_missing_token(self) -> None:
        assert isinstance(decode_token_claims(None), DecodeFailure)
        assert isinstance(decode_token_claims(""), DecodeFailure)

    def test_wrong_segment_count(self) -> None:
        result = decode_token_claims("only.two")
        assert isinstance(result, DecodeFailure)
        assert "2" in result.reason

    def test_garbage_payload(self) -> None:
        assert isinstance(decode_token_claims("a.!!!.c"), DecodeFailure)
        assert isinstance(decode_token_claims("a.bm90IGpzb24.c"), DecodeFailure)

    def test_non_object_payload(self) -> None:
        assert isinstance(decode_token_claims(_unsigned([1, 2, 3])), DecodeFailure)


class TestTokenClaims:
    def test_type_mapping(self) -> None:
        assert TokenClaims({"type": "student"}).user_type() is UserType.STUDENT
        assert TokenClaims({"type": "school"}).user_type() is UserType.SCHOOL
        assert TokenClaims({"type": "parent"}).user_type() is UserType.PARENT
        assert TokenClaims({"role": "admin"}).user_type() is UserType.ADMIN

    def test_unknown_claims_default_to_admin(self, caplog) -> None:
        with caplog.at_level("WARNING"):
            assert TokenClaims({"type": "janitor"}).user_type() is UserType.ADMIN
        assert "defaulting to admin" in caplog.text

    def test_expiry(self) -> None:
        now = time.time()
        assert TokenClaims({"exp": now - 10}).is_expired(now)
        assert not TokenClaims({"exp": now + 10}).is_expired(now)
        assert not TokenClaims({}).is_expired(now)

    def test_non_numeric_exp_is_ignored(self) -> None:
        assert TokenClaims({"exp": "soon"}).exp is None
        assert TokenClaims({"exp": True}).exp is None
