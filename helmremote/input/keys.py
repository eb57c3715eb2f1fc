"""Key classification: raw (type, code, value) -> symbolic key action."""

from __future__ import annotations

from helmremote.core.models import ClassifiedEvent, RawEvent

EV_SYN = 0x00
EV_KEY = 0x01
EV_REL = 0x02
EV_ABS = 0x03
EV_MSC = 0x04

EVENT_TYPE_NAMES = {
    EV_SYN: "EV_SYN",
    EV_KEY: "EV_KEY",
    EV_REL: "EV_REL",
    EV_ABS: "EV_ABS",
    EV_MSC: "EV_MSC",
}

# Linux input-event-codes, limited to what media remotes and small
# bluetooth keypads send.
KEY_MAP = {
    1: "KEY_ESC",
    14: "KEY_BACKSPACE",
    28: "KEY_ENTER",
    57: "KEY_SPACE",
    102: "KEY_HOME",
    103: "KEY_UP",
    104: "KEY_PAGEUP",
    105: "KEY_LEFT",
    106: "KEY_RIGHT",
    107: "KEY_END",
    108: "KEY_DOWN",
    109: "KEY_PAGEDOWN",
    113: "KEY_MUTE",
    114: "KEY_VOLUMEDOWN",
    115: "KEY_VOLUMEUP",
    116: "KEY_POWER",
    119: "KEY_PAUSE",
    139: "KEY_MENU",
    158: "KEY_BACK",
    159: "KEY_FORWARD",
    163: "KEY_NEXTSONG",
    164: "KEY_PLAYPAUSE",
    165: "KEY_PREVIOUSSONG",
    166: "KEY_STOPCD",
    168: "KEY_REWIND",
    172: "KEY_HOMEPAGE",
    200: "KEY_PLAYCD",
    201: "KEY_PAUSECD",
    207: "KEY_PLAY",
    208: "KEY_FASTFORWARD",
    212: "KEY_CAMERA",
    272: "BTN_LEFT",
    273: "BTN_RIGHT",
    352: "KEY_OK",
    353: "KEY_SELECT",
}

KEY_CODES = {name: code for code, name in KEY_MAP.items()}

VALUE_ACTIONS = {0: "up", 1: "down", 2: "repeat"}

# Physical button layout of the QXS-001 remote, row by row.
REMOTE_LAYOUT = [
    ["KEY_PREVIOUSSONG", "KEY_PLAYPAUSE", "KEY_NEXTSONG"],
    ["KEY_VOLUMEUP", "KEY_VOLUMEDOWN", "KEY_ENTER"],
    ["KEY_UP"],
    ["KEY_LEFT", "KEY_DOWN", "KEY_RIGHT"],
]


def classify(event: RawEvent) -> ClassifiedEvent | None:
    """Return the key action for ``event``, or None for anything but a key event."""
    if event.type != EV_KEY:
        return None
    action = VALUE_ACTIONS.get(event.value)
    if action is None:
        return None
    return ClassifiedEvent(
        type_name=EVENT_TYPE_NAMES[EV_KEY],
        code_name=KEY_MAP.get(event.code),
        code=event.code,
        action=action,
    )
