"""post2mpv native messaging bridge."""

from .framing import FrameChannel
from .messages import InboundMessage, OutboundMessage
from .translator import RequestTranslator

__all__ = ["FrameChannel", "InboundMessage", "OutboundMessage", "RequestTranslator"]
