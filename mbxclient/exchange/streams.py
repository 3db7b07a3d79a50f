"""Market data stream events and the stream subscription client."""

from __future__ import annotations

from dataclasses import dataclass, replace
from typing import Any, Callable, Iterable, List, Mapping, Optional, Sequence, TypeVar

from ..config import get_settings, parse_proxy_url
from ..utils.exceptions import StreamDecodeError
from .models import WireModel, load_json, wire
from .user_data import decode_user_data_event
from .websocket import DEFAULT_KEEPALIVE_TIMEOUT, Decoder, ErrHandler, Handler, WsConfig, WsStream, serve

E = TypeVar("E")


@dataclass(frozen=True)
class PriceLevel:
    """One ``[price, quantity]`` book entry. Values stay decimal strings."""

    price: str
    quantity: str

    @classmethod
    def from_wire(cls, item: Sequence[Any]) -> "PriceLevel":
        if isinstance(item, (str, bytes)) or len(item) < 2:
            raise ValueError(f"price level must be [price, quantity], got {item!r}")
        return cls(price=str(item[0]), quantity=str(item[1]))

    def to_wire(self) -> List[str]:
        return [self.price, self.quantity]


def _levels(items: Iterable[Sequence[Any]]) -> List[PriceLevel]:
    return [PriceLevel.from_wire(item) for item in items]


def _dump_levels(levels: Iterable[PriceLevel]) -> List[List[str]]:
    return [level.to_wire() for level in levels]


def _level_field(key: str) -> Any:
    return wire(key, default_factory=list, load=_levels, dump=_dump_levels)


@dataclass(frozen=True)
class PartialDepthEvent(WireModel):
    """Top-N book snapshot. The symbol is not in the payload; the subscription supplies it."""

    symbol: str = ""
    last_update_id: Optional[int] = wire("lastUpdateId")
    bids: List[PriceLevel] = _level_field("bids")
    asks: List[PriceLevel] = _level_field("asks")


@dataclass(frozen=True)
class DepthEvent(WireModel):
    event: Optional[str] = wire("e")
    time: Optional[int] = wire("E")
    symbol: Optional[str] = wire("s")
    first_update_id: Optional[int] = wire("U")
    last_update_id: Optional[int] = wire("u")
    bids: List[PriceLevel] = _level_field("b")
    asks: List[PriceLevel] = _level_field("a")


@dataclass(frozen=True)
class Kline(WireModel):
    start_time: Optional[int] = wire("t")
    end_time: Optional[int] = wire("T")
    symbol: Optional[str] = wire("s")
    interval: Optional[str] = wire("i")
    first_trade_id: Optional[int] = wire("f")
    last_trade_id: Optional[int] = wire("L")
    open: Optional[str] = wire("o")
    close: Optional[str] = wire("c")
    high: Optional[str] = wire("h")
    low: Optional[str] = wire("l")
    volume: Optional[str] = wire("v")
    trade_num: Optional[int] = wire("n")
    is_final: Optional[bool] = wire("x")
    quote_volume: Optional[str] = wire("q")
    active_buy_volume: Optional[str] = wire("V")
    active_buy_quote_volume: Optional[str] = wire("Q")


@dataclass(frozen=True)
class KlineEvent(WireModel):
    event: Optional[str] = wire("e")
    time: Optional[int] = wire("E")
    symbol: Optional[str] = wire("s")
    kline: Optional[Kline] = wire("k", model=Kline)


@dataclass(frozen=True)
class AggTradeEvent(WireModel):
    event: Optional[str] = wire("e")
    time: Optional[int] = wire("E")
    symbol: Optional[str] = wire("s")
    agg_trade_id: Optional[int] = wire("a")
    price: Optional[str] = wire("p")
    quantity: Optional[str] = wire("q")
    first_trade_id: Optional[int] = wire("f")
    last_trade_id: Optional[int] = wire("l")
    trade_time: Optional[int] = wire("T")
    is_buyer_maker: Optional[bool] = wire("m")
    placeholder: Optional[bool] = wire("M")


@dataclass(frozen=True)
class TradeEvent(WireModel):
    event: Optional[str] = wire("e")
    time: Optional[int] = wire("E")
    symbol: Optional[str] = wire("s")
    trade_id: Optional[int] = wire("t")
    price: Optional[str] = wire("p")
    quantity: Optional[str] = wire("q")
    buyer_order_id: Optional[int] = wire("b")
    seller_order_id: Optional[int] = wire("a")
    trade_time: Optional[int] = wire("T")
    is_buyer_maker: Optional[bool] = wire("m")
    placeholder: Optional[bool] = wire("M")


@dataclass(frozen=True)
class MarketStatEvent(WireModel):
    """24h rolling ticker for one symbol."""

    event: Optional[str] = wire("e")
    time: Optional[int] = wire("E")
    symbol: Optional[str] = wire("s")
    price_change: Optional[str] = wire("p")
    price_change_percent: Optional[str] = wire("P")
    weighted_avg_price: Optional[str] = wire("w")
    prev_close_price: Optional[str] = wire("x")
    last_price: Optional[str] = wire("c")
    close_qty: Optional[str] = wire("Q")
    bid_price: Optional[str] = wire("b")
    bid_qty: Optional[str] = wire("B")
    ask_price: Optional[str] = wire("a")
    ask_qty: Optional[str] = wire("A")
    open_price: Optional[str] = wire("o")
    high_price: Optional[str] = wire("h")
    low_price: Optional[str] = wire("l")
    base_volume: Optional[str] = wire("v")
    quote_volume: Optional[str] = wire("q")
    open_time: Optional[int] = wire("O")
    close_time: Optional[int] = wire("C")
    first_id: Optional[int] = wire("F")
    last_id: Optional[int] = wire("L")
    count: Optional[int] = wire("n")


@dataclass(frozen=True)
class MiniMarketStatEvent(WireModel):
    event: Optional[str] = wire("e")
    time: Optional[int] = wire("E")
    symbol: Optional[str] = wire("s")
    last_price: Optional[str] = wire("c")
    open_price: Optional[str] = wire("o")
    high_price: Optional[str] = wire("h")
    low_price: Optional[str] = wire("l")
    base_volume: Optional[str] = wire("v")
    quote_volume: Optional[str] = wire("q")


@dataclass(frozen=True)
class BookTickerEvent(WireModel):
    update_id: Optional[int] = wire("u")
    symbol: Optional[str] = wire("s")
    best_bid_price: Optional[str] = wire("b")
    best_bid_qty: Optional[str] = wire("B")
    best_ask_price: Optional[str] = wire("a")
    best_ask_qty: Optional[str] = wire("A")


# ----------------------------------------------------------------------
# frame decoders
# ----------------------------------------------------------------------
def stream_symbol(stream_name: str) -> str:
    """``"btcusdt@depth5"`` -> ``"BTCUSDT"``."""
    return stream_name.split("@", 1)[0].upper()


def decode_partial_depth(symbol: str) -> Decoder:
    def decode(message: Any) -> PartialDepthEvent:
        event = PartialDepthEvent.from_wire(load_json(message))
        return replace(event, symbol=symbol)

    return decode


def decode_model(model: Callable[[Mapping[str, Any]], E]) -> Decoder:
    def decode(message: Any) -> E:
        return model(load_json(message))

    return decode


def decode_model_list(model: Callable[[Mapping[str, Any]], E]) -> Decoder:
    def decode(message: Any) -> List[E]:
        payload = load_json(message)
        if not isinstance(payload, list):
            raise StreamDecodeError("expected a JSON array frame", frame=message)
        return [model(item) for item in payload]

    return decode


def decode_combined(model: Callable[[Mapping[str, Any]], Any]) -> Decoder:
    """Unwrap ``{"stream": ..., "data": ...}`` frames.

    The reported symbol is taken from the stream name so it always matches
    the subscription, even for payloads that do not carry one.
    """

    def decode(message: Any) -> Any:
        payload = load_json(message)
        if not isinstance(payload, Mapping) or "stream" not in payload or "data" not in payload:
            raise StreamDecodeError("combined frame must carry 'stream' and 'data'", frame=message)
        event = model(payload["data"])
        return replace(event, symbol=stream_symbol(str(payload["stream"])))

    return decode


# ----------------------------------------------------------------------
# subscription client
# ----------------------------------------------------------------------
def _depth_suffix(fast: bool) -> str:
    return "@100ms" if fast else ""


class MbxStreamClient:
    """Opens one stream per subscription.

    Each ``subscribe_*`` coroutine dials the endpoint and returns the
    running :class:`WsStream`; call :meth:`WsStream.stop` to end it.
    """

    def __init__(
        self,
        *,
        base_url: Optional[str] = None,
        combined_url: Optional[str] = None,
        proxy_url: Optional[str] = None,
        keepalive: bool = False,
        keepalive_timeout: float = DEFAULT_KEEPALIVE_TIMEOUT,
    ) -> None:
        settings = get_settings().mbx
        self._base_url = (base_url or settings.ws_url).rstrip("/")
        self._combined_url = (combined_url or settings.combined_url).rstrip("/")
        self._proxy_url = parse_proxy_url(proxy_url) or settings.ws_proxy_url
        self._keepalive = keepalive
        self._keepalive_timeout = keepalive_timeout

    @property
    def base_url(self) -> str:
        return self._base_url

    @property
    def combined_url(self) -> str:
        return self._combined_url

    def endpoint(self, channel: str) -> str:
        return f"{self._base_url}/{channel}"

    def combined_endpoint(self, channels: Iterable[str]) -> str:
        return f"{self._combined_url}?streams={'/'.join(channels)}"

    def config(self, endpoint: str) -> WsConfig:
        return WsConfig(
            endpoint=endpoint,
            proxy_url=self._proxy_url,
            keepalive=self._keepalive,
            keepalive_timeout=self._keepalive_timeout,
        )

    async def _serve(self, endpoint: str, decoder: Decoder, handler: Handler, err_handler: ErrHandler) -> WsStream:
        return await serve(self.config(endpoint), decoder, handler, err_handler)

    async def subscribe_partial_depth(
        self,
        symbol: str,
        levels: str,
        handler: Handler,
        err_handler: ErrHandler,
        *,
        fast: bool = False,
    ) -> WsStream:
        channel = f"{symbol.lower()}@depth{levels}{_depth_suffix(fast)}"
        return await self._serve(self.endpoint(channel), decode_partial_depth(symbol.upper()), handler, err_handler)

    async def subscribe_combined_partial_depth(
        self,
        symbol_levels: Mapping[str, str],
        handler: Handler,
        err_handler: ErrHandler,
        *,
        fast: bool = False,
    ) -> WsStream:
        channels = [f"{symbol.lower()}@depth{levels}{_depth_suffix(fast)}" for symbol, levels in symbol_levels.items()]
        decoder = decode_combined(PartialDepthEvent.from_wire)
        return await self._serve(self.combined_endpoint(channels), decoder, handler, err_handler)

    async def subscribe_depth(
        self,
        symbol: str,
        handler: Handler,
        err_handler: ErrHandler,
        *,
        fast: bool = False,
    ) -> WsStream:
        channel = f"{symbol.lower()}@depth{_depth_suffix(fast)}"
        return await self._serve(self.endpoint(channel), decode_model(DepthEvent.from_wire), handler, err_handler)

    async def subscribe_combined_depth(
        self,
        symbols: Iterable[str],
        handler: Handler,
        err_handler: ErrHandler,
        *,
        fast: bool = False,
    ) -> WsStream:
        channels = [f"{symbol.lower()}@depth{_depth_suffix(fast)}" for symbol in symbols]
        decoder = decode_combined(DepthEvent.from_wire)
        return await self._serve(self.combined_endpoint(channels), decoder, handler, err_handler)

    async def subscribe_kline(self, symbol: str, interval: str, handler: Handler, err_handler: ErrHandler) -> WsStream:
        channel = f"{symbol.lower()}@kline_{interval}"
        return await self._serve(self.endpoint(channel), decode_model(KlineEvent.from_wire), handler, err_handler)

    async def subscribe_combined_kline(
        self,
        symbol_intervals: Mapping[str, str],
        handler: Handler,
        err_handler: ErrHandler,
    ) -> WsStream:
        channels = [f"{symbol.lower()}@kline_{interval}" for symbol, interval in symbol_intervals.items()]
        decoder = decode_combined(KlineEvent.from_wire)
        return await self._serve(self.combined_endpoint(channels), decoder, handler, err_handler)

    async def subscribe_agg_trade(self, symbol: str, handler: Handler, err_handler: ErrHandler) -> WsStream:
        channel = f"{symbol.lower()}@aggTrade"
        return await self._serve(self.endpoint(channel), decode_model(AggTradeEvent.from_wire), handler, err_handler)

    async def subscribe_combined_agg_trade(
        self,
        symbols: Iterable[str],
        handler: Handler,
        err_handler: ErrHandler,
    ) -> WsStream:
        channels = [f"{symbol.lower()}@aggTrade" for symbol in symbols]
        decoder = decode_combined(AggTradeEvent.from_wire)
        return await self._serve(self.combined_endpoint(channels), decoder, handler, err_handler)

    async def subscribe_trade(self, symbol: str, handler: Handler, err_handler: ErrHandler) -> WsStream:
        channel = f"{symbol.lower()}@trade"
        return await self._serve(self.endpoint(channel), decode_model(TradeEvent.from_wire), handler, err_handler)

    async def subscribe_combined_trade(
        self,
        symbols: Iterable[str],
        handler: Handler,
        err_handler: ErrHandler,
    ) -> WsStream:
        channels = [f"{symbol.lower()}@trade" for symbol in symbols]
        decoder = decode_combined(TradeEvent.from_wire)
        return await self._serve(self.combined_endpoint(channels), decoder, handler, err_handler)

    async def subscribe_market_stat(self, symbol: str, handler: Handler, err_handler: ErrHandler) -> WsStream:
        channel = f"{symbol.lower()}@ticker"
        return await self._serve(self.endpoint(channel), decode_model(MarketStatEvent.from_wire), handler, err_handler)

    async def subscribe_combined_market_stat(
        self,
        symbols: Iterable[str],
        handler: Handler,
        err_handler: ErrHandler,
    ) -> WsStream:
        channels = [f"{symbol.lower()}@ticker" for symbol in symbols]
        decoder = decode_combined(MarketStatEvent.from_wire)
        return await self._serve(self.combined_endpoint(channels), decoder, handler, err_handler)

    async def subscribe_all_market_stats(self, handler: Handler, err_handler: ErrHandler) -> WsStream:
        decoder = decode_model_list(MarketStatEvent.from_wire)
        return await self._serve(self.endpoint("!ticker@arr"), decoder, handler, err_handler)

    async def subscribe_all_mini_market_stats(self, handler: Handler, err_handler: ErrHandler) -> WsStream:
        decoder = decode_model_list(MiniMarketStatEvent.from_wire)
        return await self._serve(self.endpoint("!miniTicker@arr"), decoder, handler, err_handler)

    async def subscribe_book_ticker(self, symbol: str, handler: Handler, err_handler: ErrHandler) -> WsStream:
        channel = f"{symbol.lower()}@bookTicker"
        return await self._serve(self.endpoint(channel), decode_model(BookTickerEvent.from_wire), handler, err_handler)

    async def subscribe_combined_book_ticker(
        self,
        symbols: Iterable[str],
        handler: Handler,
        err_handler: ErrHandler,
    ) -> WsStream:
        channels = [f"{symbol.lower()}@bookTicker" for symbol in symbols]
        decoder = decode_combined(BookTickerEvent.from_wire)
        return await self._serve(self.combined_endpoint(channels), decoder, handler, err_handler)

    async def subscribe_all_book_tickers(self, handler: Handler, err_handler: ErrHandler) -> WsStream:
        decoder = decode_model(BookTickerEvent.from_wire)
        return await self._serve(self.endpoint("!bookTicker"), decoder, handler, err_handler)

    async def subscribe_user_data(self, listen_key: str, handler: Handler, err_handler: ErrHandler) -> WsStream:
        """Stream account events for a listen key from ``MbxClient.start_user_stream``."""
        return await self._serve(self.endpoint(listen_key), decode_user_data_event, handler, err_handler)


__all__ = [
    "AggTradeEvent",
    "BookTickerEvent",
    "DepthEvent",
    "Kline",
    "KlineEvent",
    "MarketStatEvent",
    "MbxStreamClient",
    "MiniMarketStatEvent",
    "PartialDepthEvent",
    "PriceLevel",
    "TradeEvent",
    "decode_combined",
    "decode_model",
    "decode_model_list",
    "decode_partial_depth",
    "stream_symbol",
]
