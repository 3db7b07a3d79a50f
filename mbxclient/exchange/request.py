"""Request descriptor handed to the HTTP core."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, Mapping, Optional

from .params import ParamSource, Params, ParamValue

TIMESTAMP_KEY = "timestamp"
SIGNATURE_KEY = "signature"
RECV_WINDOW_KEY = "recvWindow"


class HttpMethod(str, Enum):
    """HTTP verbs used by the REST API."""

    GET = "GET"
    POST = "POST"
    PUT = "PUT"
    DELETE = "DELETE"

    @property
    def uses_form(self) -> bool:
        """Whether generated parameters go to the form body for this verb."""
        return self in (HttpMethod.POST, HttpMethod.PUT)


class SecurityType(Enum):
    """How much authentication an endpoint requires."""

    NONE = 0
    API_KEY = 1
    SIGNED = 2


class Endpoint(str, Enum):
    """REST endpoints used by the client helpers."""

    PING = "/api/v3/ping"
    SERVER_TIME = "/api/v3/time"
    EXCHANGE_INFO = "/api/v3/exchangeInfo"
    DEPTH = "/api/v3/depth"
    KLINES = "/api/v3/klines"
    ACCOUNT = "/api/v3/account"
    ORDER = "/api/v3/order"
    OPEN_ORDERS = "/api/v3/openOrders"
    ALL_ORDERS = "/api/v3/allOrders"
    ORDER_OCO = "/api/v3/order/oco"
    ORDER_LIST = "/api/v3/orderList"
    OPEN_ORDER_LIST = "/api/v3/openOrderList"
    USER_DATA_STREAM = "/api/v3/userDataStream"
    MARGIN_ORDER = "/sapi/v1/margin/order"


@dataclass
class Request:
    """One REST call: verb, path, security class and its parameters.

    The HTTP core never mutates a descriptor; it works on copies of
    ``query`` and ``form`` when it appends ``recvWindow``, ``timestamp``
    and ``signature``.
    """

    method: HttpMethod
    endpoint: str
    security: SecurityType = SecurityType.NONE
    query: Params = field(default_factory=Params)
    form: Params = field(default_factory=Params)
    recv_window: Optional[int] = None
    headers: Dict[str, str] = field(default_factory=dict)

    def __post_init__(self) -> None:
        self.method = HttpMethod(self.method.upper() if isinstance(self.method, str) else self.method)
        endpoint = self.endpoint.value if isinstance(self.endpoint, Endpoint) else str(self.endpoint)
        # some paths were published with trailing whitespace
        self.endpoint = endpoint.strip()
        if not isinstance(self.query, Params):
            self.query = Params(self.query)
        if not isinstance(self.form, Params):
            self.form = Params(self.form)

    def set_param(self, key: str, value: ParamValue) -> "Request":
        self.query[key] = value
        return self

    def set_params(self, params: ParamSource) -> "Request":
        self.query.update(Params(params))
        return self

    def set_form_param(self, key: str, value: ParamValue) -> "Request":
        self.form[key] = value
        return self

    def set_form_params(self, params: ParamSource) -> "Request":
        self.form.update(Params(params))
        return self

    def with_options(
        self,
        *,
        recv_window: Optional[int] = None,
        headers: Optional[Mapping[str, str]] = None,
    ) -> "Request":
        """Return a copy with per-request options applied. Headers are additive."""
        merged_headers = dict(self.headers)
        if headers:
            merged_headers.update(headers)
        return Request(
            method=self.method,
            endpoint=self.endpoint,
            security=self.security,
            query=self.query.copy(),
            form=self.form.copy(),
            recv_window=recv_window if recv_window is not None else self.recv_window,
            headers=merged_headers,
        )


__all__ = [
    "Endpoint",
    "HttpMethod",
    "RECV_WINDOW_KEY",
    "Request",
    "SIGNATURE_KEY",
    "SecurityType",
    "TIMESTAMP_KEY",
]
