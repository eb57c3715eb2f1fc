"""Tests for key classification."""

from __future__ import annotations

import pytest

from helmremote.core.models import ClassifiedEvent, RawEvent
from helmremote.input.keys import EV_KEY, EV_MSC, EV_REL, EV_SYN, KEY_CODES, classify


def _raw(ev_type: int, code: int, value: int) -> RawEvent:
    return RawEvent(0, 0, ev_type, code, value)


@pytest.mark.parametrize("ev_type", [EV_SYN, EV_REL, EV_MSC, 0x15])
def test_non_key_events_are_dropped(ev_type):
    assert classify(_raw(ev_type, 115, 1)) is None


@pytest.mark.parametrize("value,action", [(0, "up"), (1, "down"), (2, "repeat")])
def test_value_actions(value, action):
    assert classify(_raw(EV_KEY, 115, value)) == ClassifiedEvent(
        type_name="EV_KEY", code_name="KEY_VOLUMEUP", code=115, action=action,
    )


@pytest.mark.parametrize("value", [3, -1, 255])
def test_unknown_values_are_dropped(value):
    assert classify(_raw(EV_KEY, 115, value)) is None


def test_unknown_code_passes_without_name():
    event = classify(_raw(EV_KEY, 999, 1))
    assert event is not None
    assert event.code_name is None
    assert event.code == 999


def test_remote_keys_are_named():
    assert KEY_CODES["KEY_VOLUMEDOWN"] == 114
    assert KEY_CODES["KEY_NEXTSONG"] == 163
    assert KEY_CODES["KEY_PLAYPAUSE"] == 164
    assert KEY_CODES["KEY_PREVIOUSSONG"] == 165
