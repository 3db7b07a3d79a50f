"""Account event decoding for the user-data stream.

Every frame carries an ``e`` discriminator. Known types decode into their
payload dataclass; anything else is kept as a raw mapping so new event
types never break a running stream.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Mapping, Optional, Union

from ..utils.exceptions import StreamDecodeError
from .models import WireModel, load_json, wire


class UserDataEventType(str, Enum):
    OUTBOUND_ACCOUNT_POSITION = "outboundAccountPosition"
    BALANCE_UPDATE = "balanceUpdate"
    EXECUTION_REPORT = "executionReport"
    LIST_STATUS = "listStatus"


@dataclass(frozen=True)
class AccountBalance(WireModel):
    asset: Optional[str] = wire("a")
    free: Optional[str] = wire("f")
    locked: Optional[str] = wire("l")


@dataclass(frozen=True)
class AccountUpdateList(WireModel):
    update_time: Optional[int] = wire("u")
    balances: List[AccountBalance] = wire("B", default_factory=list, model=AccountBalance, many=True)


@dataclass(frozen=True)
class BalanceUpdate(WireModel):
    asset: Optional[str] = wire("a")
    change: Optional[str] = wire("d")
    transaction_time: Optional[int] = wire("T")


@dataclass(frozen=True)
class OrderUpdate(WireModel):
    """``executionReport`` payload.

    Keys are case-sensitive: ``t`` is the trade id and ``T`` the
    transaction time, ``i`` the order id and ``I`` an ignored counter,
    ``m`` the maker flag and ``M`` an ignored flag.
    """

    symbol: Optional[str] = wire("s")
    client_order_id: Optional[str] = wire("c")
    side: Optional[str] = wire("S")
    order_type: Optional[str] = wire("o")
    time_in_force: Optional[str] = wire("f")
    quantity: Optional[str] = wire("q")
    price: Optional[str] = wire("p")
    stop_price: Optional[str] = wire("P")
    iceberg_quantity: Optional[str] = wire("F")
    order_list_id: Optional[int] = wire("g")
    orig_client_order_id: Optional[str] = wire("C")
    execution_type: Optional[str] = wire("x")
    status: Optional[str] = wire("X")
    reject_reason: Optional[str] = wire("r")
    order_id: Optional[int] = wire("i")
    last_executed_quantity: Optional[str] = wire("l")
    filled_quantity: Optional[str] = wire("z")
    last_executed_price: Optional[str] = wire("L")
    fee_asset: Optional[str] = wire("N")
    fee_cost: Optional[str] = wire("n")
    transaction_time: Optional[int] = wire("T")
    trade_id: Optional[int] = wire("t")
    ignore_i: Optional[int] = wire("I")
    is_in_order_book: Optional[bool] = wire("w")
    is_maker: Optional[bool] = wire("m")
    ignore_m: Optional[bool] = wire("M")
    create_time: Optional[int] = wire("O")
    filled_quote_quantity: Optional[str] = wire("Z")
    last_quote_quantity: Optional[str] = wire("Y")
    quote_order_quantity: Optional[str] = wire("Q")
    self_trade_prevention_mode: Optional[str] = wire("V")
    # conditional fields
    trailing_delta: Optional[int] = wire("d")
    trailing_time: Optional[int] = wire("D")
    strategy_id: Optional[int] = wire("j")
    strategy_type: Optional[int] = wire("J")
    prevented_match_id: Optional[int] = wire("v")
    prevented_quantity: Optional[str] = wire("A")
    last_prevented_quantity: Optional[str] = wire("B")
    trade_group_id: Optional[int] = wire("u")
    counter_order_id: Optional[int] = wire("U")
    counter_symbol: Optional[str] = wire("Cs")
    prevented_execution_quantity: Optional[str] = wire("pl")
    prevented_execution_price: Optional[str] = wire("pL")
    prevented_execution_quote_quantity: Optional[str] = wire("pY")
    working_time: Optional[int] = wire("W")
    match_type: Optional[str] = wire("b")
    allocation_id: Optional[int] = wire("a")
    working_floor: Optional[str] = wire("k")
    used_sor: Optional[bool] = wire("uS")


@dataclass(frozen=True)
class OCOOrder(WireModel):
    symbol: Optional[str] = wire("s")
    order_id: Optional[int] = wire("i")
    client_order_id: Optional[str] = wire("c")


@dataclass(frozen=True)
class OCOUpdate(WireModel):
    """``listStatus`` payload."""

    symbol: Optional[str] = wire("s")
    order_list_id: Optional[int] = wire("g")
    contingency_type: Optional[str] = wire("c")
    list_status_type: Optional[str] = wire("l")
    list_order_status: Optional[str] = wire("L")
    reject_reason: Optional[str] = wire("r")
    list_client_order_id: Optional[str] = wire("C")
    transaction_time: Optional[int] = wire("T")
    orders: List[OCOOrder] = wire("O", default_factory=list, model=OCOOrder, many=True)


@dataclass(frozen=True)
class RawUserDataEvent:
    """Frame with an unrecognised ``e``; ``data`` is the full decoded object."""

    data: Dict[str, Any] = field(default_factory=dict)

    def to_wire(self) -> Dict[str, Any]:
        return dict(self.data)


UserDataPayload = Union[AccountUpdateList, BalanceUpdate, OrderUpdate, OCOUpdate, RawUserDataEvent]

_PAYLOADS = {
    UserDataEventType.OUTBOUND_ACCOUNT_POSITION.value: AccountUpdateList,
    UserDataEventType.BALANCE_UPDATE.value: BalanceUpdate,
    UserDataEventType.EXECUTION_REPORT.value: OrderUpdate,
    UserDataEventType.LIST_STATUS.value: OCOUpdate,
}


@dataclass(frozen=True)
class UserDataEvent:
    """Envelope: event name, event time and exactly one payload variant."""

    event: str
    time: Optional[int]
    payload: UserDataPayload

    @property
    def event_type(self) -> Optional[UserDataEventType]:
        try:
            return UserDataEventType(self.event)
        except ValueError:
            return None

    @property
    def is_raw(self) -> bool:
        return isinstance(self.payload, RawUserDataEvent)

    def to_dict(self) -> Dict[str, Any]:
        """Re-marshal into the wire layout the frame was decoded from."""
        if isinstance(self.payload, RawUserDataEvent):
            return self.payload.to_wire()
        result: Dict[str, Any] = {"e": self.event}
        if self.time is not None:
            result["E"] = self.time
        result.update(self.payload.to_wire())
        return result


def parse_user_data_event(payload: Mapping[str, Any]) -> UserDataEvent:
    if not isinstance(payload, Mapping):
        raise StreamDecodeError("user data frame must be a JSON object", frame=payload)
    event = payload.get("e")
    if not isinstance(event, str):
        # no usable discriminator: hand the frame through untyped
        event = ""
    event_time = payload.get("E")
    if event_time is not None and (isinstance(event_time, bool) or not isinstance(event_time, int)):
        raise StreamDecodeError(f"event time must be an integer, got {event_time!r}", frame=payload)

    model = _PAYLOADS.get(event)
    body: UserDataPayload
    if model is None:
        body = RawUserDataEvent(data=dict(payload))
    else:
        body = model.from_wire(payload)
    return UserDataEvent(event=event, time=event_time, payload=body)


def decode_user_data_event(message: Union[str, bytes]) -> UserDataEvent:
    """Decode one user-data stream frame."""
    return parse_user_data_event(load_json(message))


__all__ = [
    "AccountBalance",
    "AccountUpdateList",
    "BalanceUpdate",
    "OCOOrder",
    "OCOUpdate",
    "OrderUpdate",
    "RawUserDataEvent",
    "UserDataEvent",
    "UserDataEventType",
    "UserDataPayload",
    "decode_user_data_event",
    "parse_user_data_event",
]
