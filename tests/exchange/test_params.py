from __future__ import annotations

import random
from dataclasses import dataclass
from decimal import Decimal
from enum import Enum

import pytest

from mbxclient.exchange.params import Params, encode_params, format_value


class Side(str, Enum):
    BUY = "BUY"


@dataclass
class Filter:
    symbol: str
    limit: int


def test_keys_keep_first_insertion_order() -> None:
    params = Params()
    params["symbol"] = "BTCUSDT"
    params["side"] = "BUY"
    params["quantity"] = 1

    assert params.encode() == "symbol=BTCUSDT&side=BUY&quantity=1"


def test_overwrite_keeps_position_and_last_value_wins() -> None:
    params = Params(symbol="ETHBTC", side="BUY", price="0.1")
    params["side"] = "SELL"

    assert list(params) == ["symbol", "side", "price"]
    assert params.encode() == "symbol=ETHBTC&side=SELL&price=0.1"


def test_delete_then_reinsert_moves_key_to_end() -> None:
    params = Params([("a", 1), ("b", 2)])
    del params["a"]
    params["a"] = 3

    assert params.encode() == "b=2&a=3"


@pytest.mark.parametrize(
    "value,expected",
    [
        (True, "true"),
        (False, "false"),
        (42, "42"),
        (-7, "-7"),
        (0.1, "0.1"),
        (20000.0, "20000"),
        (1e-7, "0.0000001"),
        (123456789.125, "123456789.125"),
        (Decimal("0.00010000"), "0.00010000"),
        (Decimal("1E-8"), "0.00000001"),
        (Side.BUY, "BUY"),
        (b"raw", "raw"),
        (["BTCUSDT", "BNBBTC"], '["BTCUSDT","BNBBTC"]'),
        ({"a": 1}, '{"a":1}'),
        (Filter(symbol="BTCUSDT", limit=5), '{"symbol":"BTCUSDT","limit":5}'),
    ],
)
def test_format_value(value, expected) -> None:
    assert format_value(value) == expected


def test_format_value_rejects_unknown_types_and_non_finite_floats() -> None:
    with pytest.raises(TypeError):
        format_value(object())
    with pytest.raises(ValueError):
        format_value(float("nan"))


def test_list_values_are_json_then_percent_encoded() -> None:
    encoded = encode_params([("symbols", ["BTCUSDT", "BNBBTC"])])
    assert encoded == "symbols=%5B%22BTCUSDT%22%2C%22BNBBTC%22%5D"


def test_reserved_characters_are_form_encoded() -> None:
    encoded = Params(newClientOrderId="my id&x=1/2").encode()
    assert encoded == "newClientOrderId=my+id%26x%3D1%2F2"


def test_encoding_is_byte_identical_across_calls() -> None:
    params = Params(symbol="BTCUSDT", quantity=0.3, timeInForce="GTC", symbols=["A", "B"])
    assert params.encode() == params.encode() == encode_params(params.copy())


def test_encoded_order_follows_shuffled_insertion_order() -> None:
    keys = [f"k{index}" for index in range(12)]
    rng = random.Random(20240101)
    for _ in range(50):
        order = keys[:]
        rng.shuffle(order)
        params = Params()
        for key in order:
            params[key] = rng.randint(0, 1000)
        encoded_keys = [pair.split("=", 1)[0] for pair in params.encode().split("&")]
        assert encoded_keys == order


def test_set_optional_skips_none_and_chains() -> None:
    params = Params().set("symbol", "BTCUSDT").set_optional("limit", None).set_optional("fromId", 0)
    assert params.encode() == "symbol=BTCUSDT&fromId=0"


def test_empty_params_encode_to_empty_string() -> None:
    assert Params().encode() == ""
    assert encode_params(None) == ""
