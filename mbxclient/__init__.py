"""Client library for the exchange's REST and WebSocket APIs."""

from .config import AppSettings, KeyType, MbxSettings, get_settings
from .exchange import MbxClient, MbxStreamClient

__version__ = "0.1.0"

__all__ = ["AppSettings", "KeyType", "MbxClient", "MbxSettings", "MbxStreamClient", "get_settings", "__version__"]
