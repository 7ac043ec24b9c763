"""Tests for store events and their log encoding."""

from __future__ import annotations

import pytest

from state_sync.abi import encode
from state_sync.subspecs.store import VALUE_SET_TOPIC, UpdateEvent, WriteEvent
from state_sync.subspecs.store.events import WRITE_DATA_TYPES
from state_sync.types import Bytes32, InvalidProof, InvalidSignature
from tests.state_sync.helpers import ALICE, make_bytes32, make_write_event


class TestWriteEvent:
    """Tests for decoding write events from raw logs."""

    def test_decodes_its_own_log(self) -> None:
        """Topics and data emitted for a write decode back to the same event."""
        event = make_write_event(key="k", value=b"\x00\xff", nonce=4, version=2)

        assert WriteEvent.from_log(event.topics(), event.data()) == event

    def test_topics_layout(self) -> None:
        """Selector, sender topic, hashed key."""
        event = make_write_event()

        assert event.topics() == (VALUE_SET_TOPIC, ALICE.to_topic(), event.hashed_key)

    def test_other_selector_is_invalid_signature(self) -> None:
        """A log of another event is not a write."""
        event = make_write_event()
        topics = (make_bytes32(1), *event.topics()[1:])

        with pytest.raises(InvalidSignature):
            WriteEvent.from_log(topics, event.data())

    def test_no_topics_is_invalid_signature(self) -> None:
        """Anonymous logs carry no selector."""
        with pytest.raises(InvalidSignature):
            WriteEvent.from_log((), make_write_event().data())

    def test_missing_topic_is_invalid_proof(self) -> None:
        """The right selector with the wrong topic count is malformed."""
        event = make_write_event()

        with pytest.raises(InvalidProof, match="3 topics"):
            WriteEvent.from_log(event.topics()[:2], event.data())

    def test_dirty_sender_topic_is_invalid_proof(self) -> None:
        """Sender topics must be a zero-padded address."""
        event = make_write_event()
        topics = (VALUE_SET_TOPIC, Bytes32(b"\x01" * 32), event.hashed_key)

        with pytest.raises(InvalidProof):
            WriteEvent.from_log(topics, event.data())

    def test_truncated_data_is_invalid_proof(self) -> None:
        """Data must decode as (string, bytes, uint256, uint256)."""
        event = make_write_event()

        with pytest.raises(InvalidProof):
            WriteEvent.from_log(event.topics(), event.data()[:-32])

    def test_version_zero_is_invalid_proof(self) -> None:
        """Every emitted write carries a version of at least one."""
        event = make_write_event()
        data = encode(WRITE_DATA_TYPES, ["greeting", b"hello", 0, 0])

        with pytest.raises(InvalidProof, match="version 0"):
            WriteEvent.from_log(event.topics(), data)


class TestUpdateEvent:
    """Tests for decoding update events."""

    def test_decodes_its_own_log(self) -> None:
        """Topics and data emitted for an update decode back to the same event."""
        update = UpdateEvent(hashed_key=make_bytes32(9), value=b"v", version=3)

        assert UpdateEvent.from_log(update.topics(), update.data()) == update

    def test_write_log_is_not_an_update(self) -> None:
        """Logs of other events decode to None."""
        event = make_write_event()

        assert UpdateEvent.from_log(event.topics(), event.data()) is None

    def test_garbage_data_is_not_an_update(self) -> None:
        """Undecodable data decodes to None."""
        update = UpdateEvent(hashed_key=make_bytes32(9), value=b"v", version=3)

        assert UpdateEvent.from_log(update.topics(), b"\x01") is None
