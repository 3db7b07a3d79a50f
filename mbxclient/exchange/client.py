"""REST client: request composition, signing, transport and error translation."""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from typing import Any, Mapping, Optional, Sequence, Tuple, Union

import requests
from requests import Session

from ..config import KeyType, get_settings, parse_proxy_url
from ..utils.exceptions import APIError, ConfigurationError, DataValidationError, ProtocolError, TransportError
from ..utils.logger import get_logger
from ..utils.time_utils import current_timestamp_ms
from .params import ParamSource, Params, encode_params
from .request import (
    RECV_WINDOW_KEY,
    SIGNATURE_KEY,
    TIMESTAMP_KEY,
    Endpoint,
    HttpMethod,
    Request,
    SecurityType,
)
from .signer import Credentials, Signer, create_signer

Headers = Mapping[str, str]
Timeout = Union[float, Tuple[float, float]]

DEFAULT_USER_AGENT = "mbxclient/0.1 (python)"
DEFAULT_TIMEOUT: Timeout = 10
API_KEY_HEADER = "X-MBX-APIKEY"
FORM_CONTENT_TYPE = "application/x-www-form-urlencoded"


@dataclass(frozen=True)
class PreparedRequest:
    """Fully composed request, ready for the transport."""

    method: str
    url: str
    body: str
    headers: dict[str, str]
    payload: str = ""


@dataclass(frozen=True)
class RawResponse:
    """Status and undecoded body of a successful call."""

    status_code: int
    content: bytes
    headers: Mapping[str, str] = field(default_factory=dict)


class MbxClient:
    """Synchronous REST client.

    Every endpoint goes through :meth:`call_api`: parameters are encoded
    in insertion order, signed endpoints get ``recvWindow``/``timestamp``
    appended after the caller's parameters and ``signature`` appended last
    to the query string. Nothing is retried.
    """

    def __init__(
        self,
        *,
        api_key: Optional[str] = None,
        secret_key: Optional[Union[str, bytes]] = None,
        key_type: Optional[Union[KeyType, str]] = None,
        passphrase: Optional[str] = None,
        base_url: Optional[str] = None,
        session: Optional[Session] = None,
        timeout: Timeout = DEFAULT_TIMEOUT,
        user_agent: str = DEFAULT_USER_AGENT,
        http_proxy_url: Optional[str] = None,
        time_offset_ms: Optional[int] = None,
        debug: bool = False,
    ) -> None:
        settings = get_settings().mbx

        self._base_url = (base_url or settings.rest_url).rstrip("/")
        self._timeout: Timeout = timeout
        self._session: Session = session or requests.Session()
        self._owns_session = session is None
        self._default_headers: dict[str, str] = {
            "Accept": "application/json",
            "User-Agent": user_agent,
        }
        self._debug = debug
        self._logger = get_logger(__name__)
        self._now_ms = current_timestamp_ms

        proxy_url = parse_proxy_url(http_proxy_url) or settings.http_proxy_url
        if proxy_url and self._owns_session:
            self._session.proxies.update({"http": proxy_url, "https": proxy_url})

        resolved_api_key = api_key or (settings.api_key.get_secret_value() if settings.api_key else "")
        resolved_secret = secret_key or (settings.secret_key.get_secret_value() if settings.secret_key else "")
        resolved_passphrase = passphrase or (settings.passphrase.get_secret_value() if settings.passphrase else None)
        self._credentials = Credentials(
            api_key=resolved_api_key,
            secret=resolved_secret,
            key_type=KeyType.parse(key_type) if key_type is not None else settings.key_type,
            passphrase=resolved_passphrase,
        )
        self._signer: Optional[Signer] = None
        self._time_offset_ms = int(time_offset_ms if time_offset_ms is not None else settings.time_offset_ms)

    @property
    def base_url(self) -> str:
        return self._base_url

    @property
    def timeout(self) -> Timeout:
        return self._timeout

    @property
    def session(self) -> Session:
        return self._session

    @property
    def credentials(self) -> Credentials:
        return self._credentials

    @property
    def time_offset_ms(self) -> int:
        """Milliseconds added to every generated ``timestamp``."""
        return self._time_offset_ms

    @time_offset_ms.setter
    def time_offset_ms(self, value: int) -> None:
        self._time_offset_ms = int(value)

    def close(self) -> None:
        if self._owns_session:
            self._session.close()

    def __enter__(self) -> "MbxClient":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:  # pragma: no cover - context manager convenience
        self.close()

    # ------------------------------------------------------------------
    # request pipeline
    # ------------------------------------------------------------------
    def _get_signer(self) -> Signer:
        if self._signer is None:
            self._signer = create_signer(self._credentials)
        return self._signer

    @staticmethod
    def _drop_caller_key(key: str, *containers: Params) -> None:
        for container in containers:
            container.pop(key, None)

    def prepare(self, request: Request) -> PreparedRequest:
        """Compose URL, body and headers for ``request`` without sending it."""
        query = request.query.copy()
        form = request.form.copy()
        generated = form if request.method.uses_form else query

        # generated keys always follow the caller's params
        if request.recv_window and request.recv_window > 0:
            self._drop_caller_key(RECV_WINDOW_KEY, query, form)
            generated[RECV_WINDOW_KEY] = int(request.recv_window)
        if request.security is SecurityType.SIGNED:
            self._drop_caller_key(TIMESTAMP_KEY, query, form)
            # offset is read once per request
            generated[TIMESTAMP_KEY] = self._now_ms() + self._time_offset_ms

        query_string = query.encode()
        body = form.encode()

        headers = dict(self._default_headers)
        headers.update(request.headers)
        if body:
            headers["Content-Type"] = FORM_CONTENT_TYPE
        if request.security is not SecurityType.NONE:
            if not self._credentials.api_key:
                raise ConfigurationError("API key is not configured")
            headers[API_KEY_HEADER] = self._credentials.api_key

        payload = ""
        if request.security is SecurityType.SIGNED:
            payload = f"{query_string}{body}"
            signature = encode_params([(SIGNATURE_KEY, self._get_signer().sign(payload))])
            query_string = f"{query_string}&{signature}" if query_string else signature

        url = f"{self._base_url}{request.endpoint}"
        if query_string:
            url = f"{url}?{query_string}"
        return PreparedRequest(
            method=request.method.value,
            url=url,
            body=body,
            headers=headers,
            payload=payload,
        )

    def call_api(
        self,
        request: Request,
        *,
        recv_window: Optional[int] = None,
        headers: Optional[Headers] = None,
        timeout: Optional[Timeout] = None,
    ) -> RawResponse:
        """Send one request and return the raw body of a 2xx response."""
        if recv_window is not None or headers:
            request = request.with_options(recv_window=recv_window, headers=headers)
        prepared = self.prepare(request)
        if self._debug:
            self._logger.debug("%s %s body=%s", prepared.method, request.endpoint, prepared.body)

        try:
            response = self._session.request(
                method=prepared.method,
                url=prepared.url,
                data=prepared.body or None,
                headers=prepared.headers,
                timeout=timeout if timeout is not None else self._timeout,
            )
        except requests.RequestException as exc:
            raise TransportError(f"{prepared.method} {request.endpoint} failed: {exc}") from exc

        status_code = int(response.status_code)
        content = response.content or b""
        if self._debug:
            self._logger.debug("%s %s -> %d", prepared.method, request.endpoint, status_code)
        if not 200 <= status_code <= 299:
            raise self._error_from_response(status_code, content)
        response_headers = dict(getattr(response, "headers", None) or {})
        return RawResponse(status_code=status_code, content=content, headers=response_headers)

    def _error_from_response(self, status_code: int, content: bytes) -> Exception:
        try:
            payload = json.loads(content)
        except ValueError:
            payload = None
        if isinstance(payload, Mapping) and (payload.get("code") or payload.get("msg")):
            try:
                code = int(payload.get("code") or 0)
            except (TypeError, ValueError):
                code = 0
            return APIError(
                code,
                str(payload.get("msg") or ""),
                status_code=status_code,
                response=content,
            )
        return ProtocolError(
            f"HTTP {status_code} with unrecognized body: {content[:200]!r}",
            status_code=status_code,
            body=content,
        )

    @staticmethod
    def decode_json(response: RawResponse) -> Any:
        """Decode a response body, mapping failures to :class:`ProtocolError`."""
        if not response.content:
            return {}
        try:
            return json.loads(response.content)
        except ValueError as exc:
            raise ProtocolError(
                "response body is not valid JSON",
                status_code=response.status_code,
                body=response.content,
            ) from exc

    def request(
        self,
        method: Union[HttpMethod, str],
        endpoint: Union[Endpoint, str],
        *,
        params: ParamSource = None,
        data: ParamSource = None,
        security: SecurityType = SecurityType.NONE,
        recv_window: Optional[int] = None,
        headers: Optional[Headers] = None,
        timeout: Optional[Timeout] = None,
    ) -> Any:
        """Build a :class:`Request`, send it and decode the JSON body."""
        descriptor = Request(
            method=HttpMethod(method.upper() if isinstance(method, str) else method),
            endpoint=endpoint,
            security=security,
            query=Params(params),
            form=Params(data),
            recv_window=recv_window,
        )
        raw = self.call_api(descriptor, headers=headers, timeout=timeout)
        return self.decode_json(raw)

    def get(self, endpoint: Union[Endpoint, str], **kwargs: Any) -> Any:
        return self.request(HttpMethod.GET, endpoint, **kwargs)

    def post(self, endpoint: Union[Endpoint, str], **kwargs: Any) -> Any:
        return self.request(HttpMethod.POST, endpoint, **kwargs)

    def put(self, endpoint: Union[Endpoint, str], **kwargs: Any) -> Any:
        return self.request(HttpMethod.PUT, endpoint, **kwargs)

    def delete(self, endpoint: Union[Endpoint, str], **kwargs: Any) -> Any:
        return self.request(HttpMethod.DELETE, endpoint, **kwargs)

    # ------------------------------------------------------------------
    # endpoint helpers
    # ------------------------------------------------------------------
    def ping(self) -> None:
        self.get(Endpoint.PING)

    def get_server_time(self) -> int:
        payload = self.get(Endpoint.SERVER_TIME)
        try:
            return int(payload["serverTime"])
        except (KeyError, TypeError, ValueError) as exc:
            raise ProtocolError("serverTime missing from response", body=json.dumps(payload).encode()) from exc

    def sync_time_offset(self) -> int:
        """Set :attr:`time_offset_ms` from the server clock and return it."""
        server_time = self.get_server_time()
        self.time_offset_ms = server_time - self._now_ms()
        return self.time_offset_ms

    def get_exchange_info(self, symbols: Optional[Sequence[str]] = None) -> Any:
        params = Params()
        if symbols:
            if len(symbols) == 1:
                params["symbol"] = symbols[0]
            else:
                params["symbols"] = list(symbols)
        return self.get(Endpoint.EXCHANGE_INFO, params=params)

    def get_depth(self, symbol: str, *, limit: Optional[int] = None) -> Any:
        params = Params(symbol=symbol).set_optional("limit", limit)
        return self.get(Endpoint.DEPTH, params=params)

    def get_klines(
        self,
        symbol: str,
        interval: str,
        *,
        limit: Optional[int] = None,
        start_time: Optional[int] = None,
        end_time: Optional[int] = None,
    ) -> Any:
        params = Params(symbol=symbol, interval=interval)
        params.set_optional("limit", limit)
        params.set_optional("startTime", start_time)
        params.set_optional("endTime", end_time)
        return self.get(Endpoint.KLINES, params=params)

    def get_account(self, *, omit_zero_balances: Optional[bool] = None, **options: Any) -> Any:
        params = Params().set_optional("omitZeroBalances", omit_zero_balances)
        return self.get(Endpoint.ACCOUNT, params=params, security=SecurityType.SIGNED, **options)

    def create_order(
        self,
        *,
        symbol: str,
        side: str,
        order_type: str,
        time_in_force: Optional[str] = None,
        quantity: Optional[Union[str, float]] = None,
        quote_order_qty: Optional[Union[str, float]] = None,
        price: Optional[Union[str, float]] = None,
        stop_price: Optional[Union[str, float]] = None,
        new_client_order_id: Optional[str] = None,
        new_order_resp_type: Optional[str] = None,
        **options: Any,
    ) -> Any:
        data = Params(symbol=symbol, side=side, type=order_type)
        data.set_optional("timeInForce", time_in_force)
        data.set_optional("quantity", quantity)
        data.set_optional("quoteOrderQty", quote_order_qty)
        data.set_optional("price", price)
        data.set_optional("stopPrice", stop_price)
        data.set_optional("newClientOrderId", new_client_order_id)
        data.set_optional("newOrderRespType", new_order_resp_type)
        return self.post(Endpoint.ORDER, data=data, security=SecurityType.SIGNED, **options)

    def get_order(
        self,
        *,
        symbol: str,
        order_id: Optional[int] = None,
        orig_client_order_id: Optional[str] = None,
        **options: Any,
    ) -> Any:
        params = Params(symbol=symbol)
        params.set_optional("orderId", order_id)
        params.set_optional("origClientOrderId", orig_client_order_id)
        return self.get(Endpoint.ORDER, params=params, security=SecurityType.SIGNED, **options)

    def cancel_order(
        self,
        *,
        symbol: str,
        order_id: Optional[int] = None,
        orig_client_order_id: Optional[str] = None,
        **options: Any,
    ) -> Any:
        if order_id is None and orig_client_order_id is None:
            raise DataValidationError("either order_id or orig_client_order_id is required")
        params = Params(symbol=symbol)
        params.set_optional("orderId", order_id)
        params.set_optional("origClientOrderId", orig_client_order_id)
        return self.delete(Endpoint.ORDER, params=params, security=SecurityType.SIGNED, **options)

    def list_open_orders(self, *, symbol: Optional[str] = None, **options: Any) -> Any:
        params = Params().set_optional("symbol", symbol)
        return self.get(Endpoint.OPEN_ORDERS, params=params, security=SecurityType.SIGNED, **options)

    def list_all_orders(
        self,
        *,
        symbol: str,
        order_id: Optional[int] = None,
        start_time: Optional[int] = None,
        end_time: Optional[int] = None,
        limit: Optional[int] = None,
        **options: Any,
    ) -> Any:
        params = Params(symbol=symbol)
        params.set_optional("orderId", order_id)
        params.set_optional("startTime", start_time)
        params.set_optional("endTime", end_time)
        params.set_optional("limit", limit)
        return self.get(Endpoint.ALL_ORDERS, params=params, security=SecurityType.SIGNED, **options)

    def get_order_list(
        self,
        *,
        order_list_id: Optional[int] = None,
        orig_client_order_id: Optional[str] = None,
        **options: Any,
    ) -> Any:
        if order_list_id is None and orig_client_order_id is None:
            raise DataValidationError("either order_list_id or orig_client_order_id is required")
        params = Params()
        params.set_optional("orderListId", order_list_id)
        params.set_optional("origClientOrderId", orig_client_order_id)
        return self.get(Endpoint.ORDER_LIST, params=params, security=SecurityType.SIGNED, **options)

    def create_oco_order(
        self,
        *,
        symbol: str,
        side: str,
        quantity: Union[str, float],
        price: Optional[Union[str, float]],
        stop_price: Optional[Union[str, float]],
        stop_limit_price: Optional[Union[str, float]] = None,
        stop_limit_time_in_force: Optional[str] = None,
        list_client_order_id: Optional[str] = None,
        **options: Any,
    ) -> Any:
        if price is None or stop_price is None:
            raise DataValidationError("OCO orders require both price and stop_price")
        data = Params(symbol=symbol, side=side, quantity=quantity, price=price, stopPrice=stop_price)
        data.set_optional("stopLimitPrice", stop_limit_price)
        data.set_optional("stopLimitTimeInForce", stop_limit_time_in_force)
        data.set_optional("listClientOrderId", list_client_order_id)
        return self.post(Endpoint.ORDER_OCO, data=data, security=SecurityType.SIGNED, **options)

    def list_open_order_lists(self, **options: Any) -> Any:
        return self.get(Endpoint.OPEN_ORDER_LIST, security=SecurityType.SIGNED, **options)

    def create_margin_order(
        self,
        *,
        symbol: str,
        side: str,
        order_type: str,
        quantity: Optional[Union[str, float]] = None,
        price: Optional[Union[str, float]] = None,
        time_in_force: Optional[str] = None,
        is_isolated: Optional[bool] = None,
        side_effect_type: Optional[str] = None,
        **options: Any,
    ) -> Any:
        data = Params(symbol=symbol, side=side, type=order_type)
        data.set_optional("timeInForce", time_in_force)
        data.set_optional("quantity", quantity)
        data.set_optional("price", price)
        data.set_optional("isIsolated", is_isolated)
        data.set_optional("sideEffectType", side_effect_type)
        return self.post(Endpoint.MARGIN_ORDER, data=data, security=SecurityType.SIGNED, **options)

    def start_user_stream(self) -> str:
        """Create a listen key for the user-data stream."""
        payload = self.post(Endpoint.USER_DATA_STREAM, security=SecurityType.API_KEY)
        listen_key = payload.get("listenKey") if isinstance(payload, Mapping) else None
        if not listen_key:
            raise ProtocolError("listenKey missing from response", body=json.dumps(payload).encode())
        return str(listen_key)

    def keepalive_user_stream(self, listen_key: str) -> None:
        self.put(Endpoint.USER_DATA_STREAM, data={"listenKey": listen_key}, security=SecurityType.API_KEY)

    def close_user_stream(self, listen_key: str) -> None:
        self.delete(Endpoint.USER_DATA_STREAM, data={"listenKey": listen_key}, security=SecurityType.API_KEY)


__all__ = [
    "API_KEY_HEADER",
    "DEFAULT_TIMEOUT",
    "DEFAULT_USER_AGENT",
    "MbxClient",
    "PreparedRequest",
    "RawResponse",
]
