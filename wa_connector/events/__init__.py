# Event Streaming Module
# Engine events translated to DTO frames and fanned out to tenant subscribers

from wa_connector.events.models import (
    ChatDTO,
    LastMessageDTO,
    MessageDTO,
    StreamEvent,
    StreamEventType,
    StatusEvent,
    QrEvent,
    ReadyEvent,
    StateEvent,
    MessageEvent,
    AckEvent,
)
from wa_connector.events.stream import (
    FrameFilter,
    Subscriber,
    SubscriberSet,
    parse_frame_filter,
)
from wa_connector.events.translator import (
    base_message_dto,
    enrich_message_dto,
    to_chat_dto,
)

__all__ = [
    # Models
    "ChatDTO",
    "LastMessageDTO",
    "MessageDTO",
    "StreamEvent",
    "StreamEventType",
    "StatusEvent",
    "QrEvent",
    "ReadyEvent",
    "StateEvent",
    "MessageEvent",
    "AckEvent",
    # Stream
    "FrameFilter",
    "Subscriber",
    "SubscriberSet",
    "parse_frame_filter",
    # Translator
    "base_message_dto",
    "enrich_message_dto",
    "to_chat_dto",
]
