"""Payload codec.

Payloads are pydantic models serialized as JSON bytes. Envelopes are
serialized as JSON text, one per transport frame.
"""

from __future__ import annotations

from typing import TypeVar

from pydantic import BaseModel, ValidationError

from ..errors import DecodeError
from .messages import Message

M = TypeVar("M", bound=BaseModel)


def encode(model: BaseModel) -> bytes:
    """Serialize a payload model to bytes."""
    return model.model_dump_json().encode("utf-8")


def decode(payload: bytes, model_type: type[M]) -> M:
    """Deserialize bytes into a payload model.

    Raises:
        DecodeError: If the payload is not valid for model_type
    """
    try:
        return model_type.model_validate_json(payload)
    except ValidationError as e:
        raise DecodeError(
            f"Malformed {model_type.__name__}: {e.error_count()} validation error(s)",
            target=model_type.__name__,
        ) from e


def encode_message(message: Message) -> str:
    """Serialize an envelope to a JSON text frame."""
    return message.model_dump_json()


def decode_message(frame: str | bytes) -> Message:
    """Deserialize a transport frame into an envelope.

    Raises:
        DecodeError: If the frame is not a valid envelope
    """
    try:
        return Message.model_validate_json(frame)
    except ValidationError as e:
        raise DecodeError(f"Malformed message frame: {e}", target="Message") from e
