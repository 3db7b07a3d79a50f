from __future__ import annotations

import json

import pytest

from mbxclient.exchange.user_data import (
    AccountBalance,
    AccountUpdateList,
    BalanceUpdate,
    OCOOrder,
    OCOUpdate,
    OrderUpdate,
    RawUserDataEvent,
    UserDataEventType,
    decode_user_data_event,
)
from mbxclient.utils.exceptions import StreamDecodeError

KNOWN_FIXTURES = [
    ("user_data_account_position.json", UserDataEventType.OUTBOUND_ACCOUNT_POSITION, AccountUpdateList),
    ("user_data_balance_update.json", UserDataEventType.BALANCE_UPDATE, BalanceUpdate),
    ("user_data_execution_report.json", UserDataEventType.EXECUTION_REPORT, OrderUpdate),
    ("user_data_list_status.json", UserDataEventType.LIST_STATUS, OCOUpdate),
]


@pytest.mark.parametrize("name,event_type,payload_type", KNOWN_FIXTURES)
def test_known_events_decode_to_their_variant_and_round_trip(fixture_text, name, event_type, payload_type) -> None:
    raw = fixture_text(name)

    event = decode_user_data_event(raw)

    assert event.event_type is event_type
    assert isinstance(event.payload, payload_type)
    assert not event.is_raw
    # null values on the wire are not re-emitted
    expected = {key: value for key, value in json.loads(raw).items() if value is not None}
    assert event.to_dict() == expected


def test_account_position_fields(fixture_text) -> None:
    event = decode_user_data_event(fixture_text("user_data_account_position.json"))

    assert event.time == 1629771130464
    assert event.payload == AccountUpdateList(
        update_time=1629771130463,
        balances=[AccountBalance(asset="LTC", free="503.70000000", locked="0.00000000")],
    )


def test_balance_update_fields(fixture_text) -> None:
    event = decode_user_data_event(fixture_text("user_data_balance_update.json").encode("utf-8"))

    assert event.payload == BalanceUpdate(asset="BTC", change="100.00000000", transaction_time=1573200697068)


def test_execution_report_keeps_case_sensitive_keys_apart(fixture_text) -> None:
    order = decode_user_data_event(fixture_text("user_data_execution_report.json")).payload

    assert isinstance(order, OrderUpdate)
    assert order.symbol == "ETHBTC"
    assert order.trade_id == -1
    assert order.transaction_time == 1499405658657
    assert order.order_id == 4293153
    assert order.ignore_i == 8641984
    assert order.is_maker is False
    assert order.ignore_m is False
    assert order.is_in_order_book is True
    assert order.allocation_id == 1234
    assert order.prevented_quantity == "3.000000"
    assert order.client_order_id == "mUvoqJxFIILMdfAW5iGSOW"
    assert order.orig_client_order_id == ""
    assert order.counter_symbol == "BTCUSDT"
    assert order.fee_asset is None
    assert order.fee_cost == "0"
    assert order.used_sor is True
    assert order.working_floor == "SOR"


def test_execution_report_without_conditional_fields() -> None:
    frame = {
        "e": "executionReport",
        "E": 1709393629467,
        "s": "FDUSDUSDT",
        "c": "ios_2249e2aa2d394cada23b8e2e5b8ecdb9",
        "S": "BUY",
        "o": "LIMIT",
        "i": 98534826,
        "t": -1,
        "T": 1709393629466,
        "X": "NEW",
    }

    event = decode_user_data_event(json.dumps(frame))

    assert event.payload.trailing_delta is None
    assert event.payload.working_time is None
    assert event.to_dict() == frame


def test_list_status_orders(fixture_text) -> None:
    oco = decode_user_data_event(fixture_text("user_data_list_status.json")).payload

    assert isinstance(oco, OCOUpdate)
    assert oco.order_list_id == 2
    assert oco.contingency_type == "OCO"
    assert oco.list_status_type == "EXEC_STARTED"
    assert oco.list_order_status == "EXECUTING"
    assert oco.list_client_order_id == "F4QN4G8DlFATFlIUQ0cjdD"
    assert oco.orders == [
        OCOOrder(symbol="ETHBTC", order_id=17, client_order_id="AJYsMjErWJesZvqlJCTUgL"),
        OCOOrder(symbol="ETHBTC", order_id=18, client_order_id="bfYPSQdLoqAJeNrOr9adzq"),
    ]


def test_unknown_event_is_passed_through_raw(fixture_text) -> None:
    raw = fixture_text("user_data_unknown.json")

    event = decode_user_data_event(raw)

    assert event.event == "externalLockUpdate"
    assert event.event_type is None
    assert event.is_raw
    assert isinstance(event.payload, RawUserDataEvent)
    assert event.payload.data == json.loads(raw)
    assert event.to_dict() == json.loads(raw)


@pytest.mark.parametrize(
    "frame",
    [
        "{",
        "[]",
        json.dumps({"e": "balanceUpdate", "E": "soon"}),
        json.dumps({"e": "outboundAccountPosition", "E": 1, "B": [["LTC"]]}),
    ],
)
def test_malformed_frames_raise_decode_error(frame: str) -> None:
    with pytest.raises(StreamDecodeError):
        decode_user_data_event(frame)


@pytest.mark.parametrize("frame", [{"E": 1, "x": 2}, {"e": 7, "E": 1}])
def test_frame_without_event_name_is_passed_through_raw(frame: dict) -> None:
    event = decode_user_data_event(json.dumps(frame))

    assert event.event == ""
    assert event.time == 1
    assert event.event_type is None
    assert event.is_raw
    assert event.payload.data == frame
    assert event.to_dict() == frame
