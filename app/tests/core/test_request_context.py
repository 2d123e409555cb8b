import logging

import pytest
from jose import JWTError, jwt

from app.core.config import get_settings
from app.core.logging import RequestIdFilter, request_id_ctx
from app.core.security import create_access_token, decode_token


def make_record(**extra):
    record = logging.LogRecord("app.test", logging.INFO, __file__, 1, "hello", None, None)
    for key, value in extra.items():
        setattr(record, key, value)
    return record


def test_filter_stamps_current_request_id():
    token = request_id_ctx.set("req-42")
    try:
        record = make_record()
        assert RequestIdFilter().filter(record) is True
        assert record.request_id == "req-42"
    finally:
        request_id_ctx.reset(token)


def test_filter_outside_a_request_and_explicit_extra():
    record = make_record()
    RequestIdFilter().filter(record)
    assert record.request_id is None

    token = request_id_ctx.set("req-42")
    try:
        record = make_record(request_id="explicit")
        RequestIdFilter().filter(record)
        assert record.request_id == "explicit"
    finally:
        request_id_ctx.reset(token)


def test_decode_round_trips_claims():
    claims = decode_token(create_access_token("seller-1", {"role": "SELLER"}))
    assert claims["sub"] == "seller-1"
    assert claims["role"] == "SELLER"


def test_decode_rejects_token_without_subject():
    settings = get_settings()
    token = jwt.encode({"role": "SELLER", "exp": 4102444800}, settings.jwt_secret_key, algorithm=settings.jwt_algorithm)
    with pytest.raises(JWTError):
        decode_token(token)
