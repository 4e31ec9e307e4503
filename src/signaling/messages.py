"""Wire models for the websocket control plane.

Inbound frames are JSON objects discriminated by `type`. Field names follow the
wire format (`callId`, `to_uid`, ...); Python code uses snake_case aliases.
"""

from __future__ import annotations

import json
from typing import Annotated, Any, Literal, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter
from pydantic import ValidationError as PydanticValidationError

from signaling.errors import ProtocolError

MediaKind = Literal["audio", "video"]
PresenceStatus = Literal["online", "offline", "busy"]
FailureReason = Literal["user_offline", "user_busy"]


class _WireModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True)


# Inbound (client -> server)


class AuthMessage(_WireModel):
    type: Literal["auth"]
    token: str | None = None


class PresenceUpdateMessage(_WireModel):
    type: Literal["presence.update"]
    status: PresenceStatus


class CallRequestMessage(_WireModel):
    type: Literal["call.request"]
    to_uid: str | None = None
    media: MediaKind = "video"


class CallAcceptMessage(_WireModel):
    type: Literal["call.accept"]
    call_id: str = Field(alias="callId")


class CallRejectMessage(_WireModel):
    type: Literal["call.reject"]
    call_id: str = Field(alias="callId")
    reason: str = "declined"


class CallHangupMessage(_WireModel):
    type: Literal["call.hangup"]
    call_id: str = Field(alias="callId")
    reason: str = "user"


class CallOfferMessage(_WireModel):
    type: Literal["call.offer"]
    call_id: str = Field(alias="callId")
    to_uid: str
    sdp: Any


class CallAnswerMessage(_WireModel):
    type: Literal["call.answer"]
    call_id: str = Field(alias="callId")
    to_uid: str
    sdp: Any


class CallIceMessage(_WireModel):
    type: Literal["call.ice"]
    call_id: str = Field(alias="callId")
    to_uid: str
    candidate: Any


InboundMessage = Annotated[
    Union[
        AuthMessage,
        PresenceUpdateMessage,
        CallRequestMessage,
        CallAcceptMessage,
        CallRejectMessage,
        CallHangupMessage,
        CallOfferMessage,
        CallAnswerMessage,
        CallIceMessage,
    ],
    Field(discriminator="type"),
]
RelayMessage = Union[CallOfferMessage, CallAnswerMessage, CallIceMessage]

INBOUND_TYPES = frozenset(
    {
        "auth",
        "presence.update",
        "call.request",
        "call.accept",
        "call.reject",
        "call.hangup",
        "call.offer",
        "call.answer",
        "call.ice",
    }
)

_INBOUND_ADAPTER: TypeAdapter[InboundMessage] = TypeAdapter(InboundMessage)


def decode_frame(raw: str | bytes) -> InboundMessage:
    """Parse one text frame into a typed inbound message.

    Raises ProtocolError for unparseable JSON, unknown kinds and payloads that
    are missing required fields.
    """

    try:
        data = json.loads(raw)
    except (ValueError, RecursionError) as exc:
        # Oversized integer literals raise a plain ValueError, deep nesting a RecursionError.
        raise ProtocolError("Invalid message format") from exc

    if not isinstance(data, dict):
        raise ProtocolError("Invalid message format")

    kind = data.get("type")
    if not isinstance(kind, str) or kind not in INBOUND_TYPES:
        raise ProtocolError(f"Unknown message type: {kind}")

    try:
        return _INBOUND_ADAPTER.validate_python(data)
    except PydanticValidationError as exc:
        fields = ", ".join(
            ".".join(str(part) for part in error["loc"][1:]) or kind for error in exc.errors()
        )
        raise ProtocolError(f"Malformed {kind} message: {fields}") from exc


# Outbound (server -> client)


class OutboundMessage(_WireModel):
    def to_frame(self) -> dict[str, Any]:
        return self.model_dump(by_alias=True)


class UserInfo(_WireModel):
    uid: str
    display_name: str | None = Field(default=None, alias="displayName")


class AuthSuccess(OutboundMessage):
    type: Literal["auth.success"] = "auth.success"
    user: UserInfo


class CallRinging(OutboundMessage):
    type: Literal["call.ringing"] = "call.ringing"
    call_id: str = Field(alias="callId")
    to_uid: str


class CallIncoming(OutboundMessage):
    type: Literal["call.incoming"] = "call.incoming"
    call_id: str = Field(alias="callId")
    from_uid: str
    from_name: str | None = None
    media: MediaKind


class CallAccepted(OutboundMessage):
    type: Literal["call.accepted"] = "call.accepted"
    call_id: str = Field(alias="callId")
    should_send_offer: bool = Field(default=True, alias="shouldSendOffer")


class CallRejected(OutboundMessage):
    type: Literal["call.rejected"] = "call.rejected"
    call_id: str = Field(alias="callId")
    reason: str


class CallEnded(OutboundMessage):
    type: Literal["call.ended"] = "call.ended"
    call_id: str = Field(alias="callId")
    reason: str


class CallTimeout(OutboundMessage):
    type: Literal["call.timeout"] = "call.timeout"
    call_id: str = Field(alias="callId")


class CallFailed(OutboundMessage):
    type: Literal["call.failed"] = "call.failed"
    reason: FailureReason
    to_uid: str


class RelayedNegotiation(OutboundMessage):
    type: Literal["call.offer", "call.answer"]
    call_id: str = Field(alias="callId")
    from_uid: str
    sdp: Any


class RelayedCandidate(OutboundMessage):
    type: Literal["call.ice"] = "call.ice"
    call_id: str = Field(alias="callId")
    from_uid: str
    candidate: Any


class ErrorFrame(OutboundMessage):
    type: Literal["error"] = "error"
    code: str
    message: str
