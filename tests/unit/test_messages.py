"""Unit tests for wire messages and the payload codec."""

import json

import pytest

from cookiejar_events.errors import DecodeError
from cookiejar_events.protocol import (
    ClientEventsSubscribeRequest,
    ClientEventsSubscribeResponse,
    ClientEventsUnsubscribeResponse,
    Event,
    EventList,
    EventSubscription,
    Message,
    MessageType,
    SubscribeStatus,
    UnsubscribeStatus,
    decode,
    decode_message,
    encode,
    encode_message,
    new_correlation_id,
    status_name,
)


class TestMessage:
    """Test the Message envelope."""

    def test_create_from_enum(self):
        message = Message.create(MessageType.CLIENT_EVENTS, b"abc")

        assert message.message_type == "CLIENT_EVENTS"
        assert message.content == b"abc"
        assert message.correlation_id is None

    def test_create_with_correlation(self):
        message = Message.create("CUSTOM", correlation_id="c1")

        assert message.message_type == "CUSTOM"
        assert message.correlation_id == "c1"

    def test_frame_is_json_with_base64_content(self):
        frame = encode_message(Message.create(MessageType.CLIENT_EVENTS, b"\x00\xff"))
        data = json.loads(frame)

        assert data["message_type"] == "CLIENT_EVENTS"
        assert data["content"] == "AP8="

    def test_decode_frame(self):
        frame = json.dumps(
            {"message_type": "CLIENT_EVENTS", "correlation_id": None, "content": "aGk="}
        )

        message = decode_message(frame)

        assert message.content == b"hi"

    def test_unknown_type_still_decodes(self):
        message = decode_message('{"message_type": "NEW_THING"}')

        assert message.message_type == "NEW_THING"
        assert message.content == b""

    @pytest.mark.parametrize("frame", ["not json", "{}", '{"message_type": 5}'])
    def test_malformed_frame(self, frame):
        with pytest.raises(DecodeError):
            decode_message(frame)

    def test_correlation_ids_unique(self):
        assert len({new_correlation_id() for _ in range(100)}) == 100


class TestPayloads:
    """Test payload encoding."""

    def test_subscribe_request_shape(self):
        request = ClientEventsSubscribeRequest(
            subscriptions=(EventSubscription(event_type="sawtooth/block-commit"),)
        )
        data = json.loads(encode(request))

        assert data == {
            "subscriptions": [{"event_type": "sawtooth/block-commit", "filters": []}],
            "last_known_block_ids": [],
        }

    def test_event_data_is_bytes(self):
        batch = EventList(
            events=(Event(event_type="sawtooth/state-delta", data=b"\x01\x02"),)
        )

        decoded = decode(encode(batch), EventList)

        assert decoded.events[0].data == b"\x01\x02"
        assert decoded.events[0].attributes == {}

    @pytest.mark.parametrize("status", ["STATUS_UNSET", "MAYBE"])
    def test_unlisted_status_decodes_as_name(self, status):
        response = decode(
            f'{{"status": "{status}"}}'.encode(), ClientEventsUnsubscribeResponse
        )

        assert status_name(response.status) == status
        assert response.status != UnsubscribeStatus.OK

    def test_known_status_decodes_as_enum(self):
        response = decode(b'{"status": "INVALID_FILTER"}', ClientEventsSubscribeResponse)

        assert response.status is SubscribeStatus.INVALID_FILTER
        assert status_name(response.status) == "INVALID_FILTER"

    def test_non_string_status_is_decode_error(self):
        with pytest.raises(DecodeError) as exc_info:
            decode(b'{"status": 7}', ClientEventsSubscribeResponse)

        assert exc_info.value.target == "ClientEventsSubscribeResponse"

    def test_response_message_optional(self):
        response = decode(b'{"status": "OK"}', ClientEventsSubscribeResponse)

        assert response.status == SubscribeStatus.OK
        assert response.response_message == ""

    def test_attributes_must_be_strings(self):
        with pytest.raises(DecodeError):
            decode(
                b'{"events": [{"event_type": "x", "attributes": {"a": [1]}}]}',
                EventList,
            )
