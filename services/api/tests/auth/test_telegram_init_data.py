"""Tests for Telegram WebApp initData verification."""

import json
import time
from urllib.parse import urlencode

import pytest

from questhub.auth.telegram import InvalidInitData, compute_init_data_hash, validate_init_data

BOT_TOKEN = "123456:TEST-BOT-TOKEN"


def signed_init_data(user: dict | None = None, auth_date: int | None = None, token: str = BOT_TOKEN) -> str:
    fields = {
        "query_id": "AAHdF6IQAAAAAN0XohDhrOrc",
        "user": json.dumps(user or {"id": 777, "first_name": "Ann", "username": "ann"}),
        "auth_date": str(int(time.time()) if auth_date is None else auth_date),
    }
    fields["hash"] = compute_init_data_hash(fields, token)
    return urlencode(fields)


class TestValidateInitData:
    """Test signature and freshness checks."""

    def test_valid(self):
        identity = validate_init_data(signed_init_data(), BOT_TOKEN)
        assert identity.id == 777
        assert identity.username == "ann"

    def test_tampered_field(self):
        data = signed_init_data().replace("ann", "eve")
        with pytest.raises(InvalidInitData, match="signature"):
            validate_init_data(data, BOT_TOKEN)

    def test_signed_with_other_token(self):
        with pytest.raises(InvalidInitData, match="signature"):
            validate_init_data(signed_init_data(token="999:OTHER"), BOT_TOKEN)

    def test_missing_hash(self):
        with pytest.raises(InvalidInitData, match="not signed"):
            validate_init_data("auth_date=1&user=%7B%7D", BOT_TOKEN)

    def test_expired(self):
        stale = signed_init_data(auth_date=int(time.time()) - 3600)
        with pytest.raises(InvalidInitData, match="expired"):
            validate_init_data(stale, BOT_TOKEN, max_age_seconds=60)

    def test_max_age_zero_disables_expiry(self):
        stale = signed_init_data(auth_date=1)
        assert validate_init_data(stale, BOT_TOKEN, max_age_seconds=0).id == 777

    def test_user_without_id(self):
        with pytest.raises(InvalidInitData, match="no valid user"):
            validate_init_data(signed_init_data(user={"first_name": "Nobody"}), BOT_TOKEN)

    def test_empty_inputs(self):
        with pytest.raises(InvalidInitData):
            validate_init_data("", BOT_TOKEN)
        with pytest.raises(InvalidInitData, match="not configured"):
            validate_init_data(signed_init_data(), "")
