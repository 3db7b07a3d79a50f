"""REST and WebSocket clients for the exchange."""

from .client import API_KEY_HEADER, DEFAULT_TIMEOUT, DEFAULT_USER_AGENT, MbxClient, PreparedRequest, RawResponse
from .params import Params, encode_params
from .request import Endpoint, HttpMethod, Request, SecurityType
from .signer import Credentials, Ed25519Signer, HmacSigner, RsaSigner, Signer, create_signer
from .streams import (
    AggTradeEvent,
    BookTickerEvent,
    DepthEvent,
    Kline,
    KlineEvent,
    MarketStatEvent,
    MbxStreamClient,
    MiniMarketStatEvent,
    PartialDepthEvent,
    PriceLevel,
    TradeEvent,
)
from .user_data import (
    AccountBalance,
    AccountUpdateList,
    BalanceUpdate,
    OCOOrder,
    OCOUpdate,
    OrderUpdate,
    RawUserDataEvent,
    UserDataEvent,
    UserDataEventType,
    decode_user_data_event,
)
from .websocket import WsConfig, WsStream, dial, serve

__all__ = [
    "API_KEY_HEADER",
    "AccountBalance",
    "AccountUpdateList",
    "AggTradeEvent",
    "BalanceUpdate",
    "BookTickerEvent",
    "Credentials",
    "DEFAULT_TIMEOUT",
    "DEFAULT_USER_AGENT",
    "DepthEvent",
    "Ed25519Signer",
    "Endpoint",
    "HmacSigner",
    "HttpMethod",
    "Kline",
    "KlineEvent",
    "MarketStatEvent",
    "MbxClient",
    "MbxStreamClient",
    "MiniMarketStatEvent",
    "OCOOrder",
    "OCOUpdate",
    "OrderUpdate",
    "Params",
    "PartialDepthEvent",
    "PreparedRequest",
    "PriceLevel",
    "RawResponse",
    "RawUserDataEvent",
    "Request",
    "RsaSigner",
    "SecurityType",
    "Signer",
    "TradeEvent",
    "UserDataEvent",
    "UserDataEventType",
    "WsConfig",
    "WsStream",
    "create_signer",
    "decode_user_data_event",
    "dial",
    "encode_params",
    "serve",
]
