from __future__ import annotations

import asyncio
import json
from typing import Any, List

import pytest
import websockets

from mbxclient.exchange.streams import (
    AggTradeEvent,
    BookTickerEvent,
    DepthEvent,
    KlineEvent,
    MarketStatEvent,
    MbxStreamClient,
    MiniMarketStatEvent,
    PartialDepthEvent,
    PriceLevel,
    TradeEvent,
    decode_combined,
    decode_model,
    decode_model_list,
    decode_partial_depth,
    stream_symbol,
)
from mbxclient.exchange.user_data import UserDataEvent
from mbxclient.utils.exceptions import StreamDecodeError

KLINE_FRAME = {
    "e": "kline",
    "E": 1499404907056,
    "s": "ETHBTC",
    "k": {
        "t": 1499404860000,
        "T": 1499404919999,
        "s": "ETHBTC",
        "i": "1m",
        "f": 77462,
        "L": 77465,
        "o": "0.10278577",
        "c": "0.10278645",
        "h": "0.10278712",
        "l": "0.10278518",
        "v": "17.47929838",
        "n": 4,
        "x": False,
        "q": "1.79662878",
        "V": "2.34879839",
        "Q": "0.24142166",
        "B": "13279784.01349473",
    },
}

AGG_TRADE_FRAME = {
    "e": "aggTrade",
    "E": 1499405254326,
    "s": "ETHBTC",
    "a": 70232,
    "p": "0.10281118",
    "q": "8.15632997",
    "f": 77489,
    "l": 77489,
    "T": 1499405254324,
    "m": False,
    "M": True,
}


async def _collect_one(client_call, server_frames: List[str], paths: List[str]) -> Any:
    """Run a local stream server, subscribe through ``client_call`` and return the first event."""
    received: asyncio.Future = asyncio.get_running_loop().create_future()
    errors: List[BaseException] = []

    async def server_handler(websocket):
        paths.append(websocket.request.path)
        for frame in server_frames:
            await websocket.send(frame)
        await websocket.wait_closed()

    def on_event(event: Any) -> None:
        if not received.done():
            received.set_result(event)

    async with websockets.serve(server_handler, "127.0.0.1", 0) as server:
        port = server.sockets[0].getsockname()[1]
        client = MbxStreamClient(
            base_url=f"ws://127.0.0.1:{port}/ws",
            combined_url=f"ws://127.0.0.1:{port}/stream",
        )
        stream = await client_call(client, on_event, errors.append)
        event = await asyncio.wait_for(received, timeout=5)
        await stream.close()
    assert errors == []
    return event


def test_partial_depth_stream_decoding(fixture_text) -> None:
    paths: List[str] = []

    async def subscribe(client, handler, err_handler):
        return await client.subscribe_partial_depth("ETHBTC", "5", handler, err_handler)

    event = asyncio.run(_collect_one(subscribe, [fixture_text("partial_depth_ethbtc.json")], paths))

    assert paths == ["/ws/ethbtc@depth5"]
    assert isinstance(event, PartialDepthEvent)
    assert event.symbol == "ETHBTC"
    assert event.last_update_id == 160
    assert event.bids == [PriceLevel(price="0.0024", quantity="10")]
    assert event.asks == [PriceLevel(price="0.0026", quantity="100")]


def test_combined_depth_stream_symbol_extraction(fixture_text) -> None:
    paths: List[str] = []

    async def subscribe(client, handler, err_handler):
        return await client.subscribe_combined_depth(["BTCUSDT"], handler, err_handler)

    event = asyncio.run(_collect_one(subscribe, [fixture_text("combined_depth_btcusdt.json")], paths))

    assert paths == ["/stream?streams=btcusdt@depth"]
    assert isinstance(event, DepthEvent)
    assert event.symbol == "BTCUSDT"
    assert event.first_update_id == 13544035
    assert event.last_update_id == 13544037
    assert event.bids == [PriceLevel("49095.23", "0.0102")]
    assert event.asks == []


def test_user_data_subscription_uses_listen_key_channel(fixture_text) -> None:
    paths: List[str] = []

    async def subscribe(client, handler, err_handler):
        return await client.subscribe_user_data("pqia91ma19a5s61cv6a81va65sdf19v8a65a1", handler, err_handler)

    event = asyncio.run(_collect_one(subscribe, [fixture_text("user_data_balance_update.json")], paths))

    assert paths == ["/ws/pqia91ma19a5s61cv6a81va65sdf19v8a65a1"]
    assert isinstance(event, UserDataEvent)
    assert event.event == "balanceUpdate"


def test_fast_depth_and_combined_channel_names() -> None:
    paths: List[str] = []
    frame = json.dumps({"stream": "bnbbtc@depth10@100ms", "data": {"lastUpdateId": 1, "bids": [], "asks": []}})

    async def subscribe(client, handler, err_handler):
        return await client.subscribe_combined_partial_depth(
            {"BNBBTC": "10", "ETHBTC": "5"}, handler, err_handler, fast=True
        )

    event = asyncio.run(_collect_one(subscribe, [frame], paths))

    assert paths == ["/stream?streams=bnbbtc@depth10@100ms/ethbtc@depth5@100ms"]
    assert event.symbol == "BNBBTC"
    assert event.last_update_id == 1


@pytest.mark.parametrize(
    "stream_name,expected",
    [
        ("btcusdt@depth", "BTCUSDT"),
        ("ethbtc@kline_1m", "ETHBTC"),
        ("bnbbtc@depth5@100ms", "BNBBTC"),
        ("ltcbtc", "LTCBTC"),
    ],
)
def test_stream_symbol(stream_name: str, expected: str) -> None:
    assert stream_symbol(stream_name) == expected


def test_combined_kline_symbol_comes_from_stream_name() -> None:
    decode = decode_combined(KlineEvent.from_wire)
    # the payload symbol disagrees on purpose
    frame = json.dumps({"stream": "bnbbtc@kline_1m", "data": KLINE_FRAME})

    event = decode(frame)

    assert event.symbol == "BNBBTC"
    assert event.kline.symbol == "ETHBTC"
    assert event.kline.start_time == 1499404860000
    assert event.kline.end_time == 1499404919999
    assert event.kline.interval == "1m"
    assert event.kline.is_final is False
    assert event.kline.active_buy_quote_volume == "0.24142166"


def test_combined_agg_trade_keeps_case_sensitive_fields() -> None:
    event = decode_combined(AggTradeEvent.from_wire)(json.dumps({"stream": "ethbtc@aggTrade", "data": AGG_TRADE_FRAME}))

    assert event.symbol == "ETHBTC"
    assert event.agg_trade_id == 70232
    assert event.trade_time == 1499405254324
    assert event.is_buyer_maker is False
    assert event.placeholder is True
    assert event.to_wire() == AGG_TRADE_FRAME


def test_trade_event_distinguishes_t_and_T() -> None:
    frame = {
        "e": "trade",
        "E": 123456789,
        "s": "BNBBTC",
        "t": 12345,
        "p": "0.001",
        "q": "100",
        "b": 88,
        "a": 50,
        "T": 123456785,
        "m": True,
        "M": True,
    }
    event = decode_model(TradeEvent.from_wire)(json.dumps(frame))

    assert event.trade_id == 12345
    assert event.trade_time == 123456785
    assert event.buyer_order_id == 88
    assert event.seller_order_id == 50


def test_array_streams_decode_lists() -> None:
    tickers = decode_model_list(MarketStatEvent.from_wire)(
        json.dumps([{"e": "24hrTicker", "s": "BTCUSDT", "c": "30000.1", "Q": "0.5", "n": 10}])
    )
    minis = decode_model_list(MiniMarketStatEvent.from_wire)(
        json.dumps([{"e": "24hrMiniTicker", "s": "ETHBTC", "c": "0.06", "o": "0.05"}])
    )

    assert tickers[0].symbol == "BTCUSDT"
    assert tickers[0].last_price == "30000.1"
    assert tickers[0].close_qty == "0.5"
    assert tickers[0].count == 10
    assert minis[0].open_price == "0.05"

    with pytest.raises(StreamDecodeError):
        decode_model_list(MarketStatEvent.from_wire)(json.dumps({"e": "24hrTicker"}))


def test_book_ticker_event() -> None:
    frame = {"u": 400900217, "s": "BNBUSDT", "b": "25.35190000", "B": "31.21000000", "a": "25.36520000", "A": "40.66000000"}
    event = decode_model(BookTickerEvent.from_wire)(json.dumps(frame))

    assert event.update_id == 400900217
    assert event.best_bid_qty == "31.21000000"
    assert event.best_ask_price == "25.36520000"


@pytest.mark.parametrize(
    "frame",
    [
        "not json",
        json.dumps({"data": {}}),
        json.dumps({"stream": "btcusdt@depth", "data": {"b": [["1"]]}}),
        json.dumps({"stream": "btcusdt@depth", "data": []}),
    ],
)
def test_malformed_combined_frames_raise_decode_error(frame: str) -> None:
    with pytest.raises(StreamDecodeError):
        decode_combined(DepthEvent.from_wire)(frame)


def test_partial_depth_decoder_sets_subscription_symbol(fixture_text) -> None:
    event = decode_partial_depth("ETHBTC")(fixture_text("partial_depth_ethbtc.json").encode())
    assert event.symbol == "ETHBTC"


def test_client_defaults_follow_settings(monkeypatch: pytest.MonkeyPatch) -> None:
    from mbxclient.config import get_settings

    monkeypatch.setenv("MBX_USE_TESTNET", "1")
    monkeypatch.setenv("MBX_WS_PROXY_URL", "http://proxy.local:3128")
    get_settings.cache_clear()

    client = MbxStreamClient(keepalive=True)

    assert client.endpoint("btcusdt@trade") == "wss://testnet.binance.vision/ws/btcusdt@trade"
    assert client.combined_endpoint(["a@trade", "b@trade"]) == "wss://testnet.binance.vision/stream?streams=a@trade/b@trade"
    config = client.config("wss://x")
    assert config.proxy_url == "http://proxy.local:3128"
    assert config.keepalive is True
