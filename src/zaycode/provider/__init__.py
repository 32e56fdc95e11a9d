"""Provider transport and stream decoding."""

from .client import ChatProvider, ProviderClient
from .stream import DONE_SENTINEL, StreamDecoder, ToolCallSlot

__all__ = ["DONE_SENTINEL", "ChatProvider", "ProviderClient", "StreamDecoder", "ToolCallSlot"]
