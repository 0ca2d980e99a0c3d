"""Unit tests for frame decoding and reading defaults."""

from __future__ import annotations

import dataclasses
from datetime import datetime, timezone

import pytest

from models.records import (
    DEFAULT_SOURCE,
    FrameDecodeError,
    Reading,
    decode_frame,
    parse_timestamp,
    reading_from_payload,
)

RECEIVED_AT = datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)


def test_reading_with_only_bpm_gets_defaults() -> None:
    reading = reading_from_payload({"bpm": 72}, received_at=RECEIVED_AT)

    assert reading.bpm == 72
    assert reading.spo2 is None
    assert reading.source == DEFAULT_SOURCE == "esp32"
    assert reading.timestamp == RECEIVED_AT


def test_reading_defaults_timestamp_to_now_when_not_given() -> None:
    before = datetime.now(timezone.utc)
    reading = reading_from_payload({"spo2": 98})
    after = datetime.now(timezone.utc)

    assert before <= reading.timestamp <= after


def test_reading_uses_supplied_fields() -> None:
    reading = reading_from_payload(
        {"bpm": 80.5, "spo2": "97", "ts": "2024-01-01T00:00:00Z", "source": "wrist-2"},
        received_at=RECEIVED_AT,
    )

    assert reading.bpm == 80.5
    assert reading.spo2 == 97.0
    assert reading.timestamp == datetime(2024, 1, 1, tzinfo=timezone.utc)
    assert reading.source == "wrist-2"


@pytest.mark.parametrize("value", [True, "fast", [1], {"v": 1}, None, float("nan")])
def test_non_numeric_measurements_become_none(value) -> None:
    reading = reading_from_payload({"bpm": value}, received_at=RECEIVED_AT)

    assert reading.bpm is None


@pytest.mark.parametrize("ts", ["yesterday", "", 12.5e300, True, {"at": 1}])
def test_unparseable_timestamp_falls_back_to_ingestion_time(ts) -> None:
    reading = reading_from_payload({"bpm": 60, "ts": ts}, received_at=RECEIVED_AT)

    assert reading.timestamp == RECEIVED_AT


def test_numeric_timestamp_is_epoch_milliseconds() -> None:
    parsed = parse_timestamp(1_704_067_200_000)

    assert parsed == datetime(2024, 1, 1, tzinfo=timezone.utc)


def test_naive_timestamp_is_treated_as_utc() -> None:
    parsed = parse_timestamp("2024-01-01T10:30:00")

    assert parsed == datetime(2024, 1, 1, 10, 30, tzinfo=timezone.utc)


def test_offset_timestamp_is_normalised_to_utc() -> None:
    parsed = parse_timestamp("2024-01-01T12:00:00+02:00")

    assert parsed == datetime(2024, 1, 1, 10, 0, tzinfo=timezone.utc)


@pytest.mark.parametrize("source", [None, "", "   ", False, 0, []])
def test_blank_source_uses_sentinel(source) -> None:
    reading = reading_from_payload({"source": source}, received_at=RECEIVED_AT)

    assert reading.source == "esp32"


def test_reading_is_immutable() -> None:
    reading = reading_from_payload({"bpm": 72}, received_at=RECEIVED_AT)

    with pytest.raises(dataclasses.FrozenInstanceError):
        reading.bpm = 10  # type: ignore[misc]


def test_decode_frame_accepts_text_and_bytes() -> None:
    assert decode_frame('{"bpm": 70}') == {"bpm": 70}
    assert decode_frame(b'{"spo2": 99}') == {"spo2": 99}


@pytest.mark.parametrize("frame", ["not json", "{", "", b"\xff\xfe"])
def test_decode_frame_rejects_unparseable_frames(frame) -> None:
    with pytest.raises(FrameDecodeError):
        decode_frame(frame)


def test_json_dict_renders_iso_timestamp() -> None:
    reading = Reading(bpm=70.0, spo2=None, timestamp=RECEIVED_AT, source="esp32")

    assert reading.to_json_dict() == {
        "bpm": 70.0,
        "spo2": None,
        "ts": "2024-05-01T12:00:00+00:00",
        "source": "esp32",
    }


@pytest.mark.parametrize("frame, expected", [("[1, 2]", [1, 2]), ("42", 42), ('"text"', "text"), ("null", None)])
def test_decode_frame_accepts_any_json_value(frame, expected) -> None:
    assert decode_frame(frame) == expected


@pytest.mark.parametrize("payload", [[1, 2, 3], 42, "hello", None])
def test_non_object_payload_builds_default_reading(payload) -> None:
    reading = reading_from_payload(payload, received_at=RECEIVED_AT)

    assert reading == Reading(bpm=None, spo2=None, timestamp=RECEIVED_AT, source="esp32")


def test_truthy_non_string_source_is_stringified() -> None:
    reading = reading_from_payload({"source": 7}, received_at=RECEIVED_AT)

    assert reading.source == "7"
