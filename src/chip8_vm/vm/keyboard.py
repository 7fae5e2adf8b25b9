"""
Hex Keypad Adapter for the CHIP-8 VM
====================================

The CHIP-8 keypad has 16 keys labelled 0-F, laid out 4x4:

    1 2 3 C
    4 5 6 D
    7 8 9 E
    A 0 B F

Hosts conventionally map it onto the left block of a QWERTY keyboard:

    1 2 3 4
    Q W E R
    A S D F
    Z X C V

The core never sees key names; it receives a 16-element boolean vector
per step. `Keypad` tracks held keys and produces that vector.

Copyright (c) 2026 chip8-vm Contributors
"""

from typing import Dict, Tuple, Union

KEY_COUNT = 16

# =============================================================================
# HOST KEY MAPPING
# =============================================================================
# QWERTY key name -> CHIP-8 key index.

QWERTY_KEY_MAP: Dict[str, int] = {
    "1": 0x1, "2": 0x2, "3": 0x3, "4": 0xC,
    "Q": 0x4, "W": 0x5, "E": 0x6, "R": 0xD,
    "A": 0x7, "S": 0x8, "D": 0x9, "F": 0xE,
    "Z": 0xA, "X": 0x0, "C": 0xB, "V": 0xF,
}

KeyName = Union[int, str]


def parse_hex_key(text: str) -> int:
    """
    Parse a hex keypad label such as "A", "f" or "0xA".

    Raises:
        ValueError: If the text is not a single hex digit
    """
    cleaned = text.strip().lower()
    if cleaned.startswith("0x"):
        cleaned = cleaned[2:]
    if len(cleaned) != 1 or cleaned not in "0123456789abcdef":
        raise ValueError(f"invalid hex key: {text!r}")
    return int(cleaned, 16)


class Keypad:
    """
    Sixteen-key state holder.

    Keys are addressed by index (0-15) or by QWERTY host key name.

    Example:
        >>> pad = Keypad()
        >>> pad.key_down("w")       # QWERTY W is CHIP-8 key 5
        >>> pad.snapshot()[5]
        True
    """

    def __init__(self):
        self._pressed = [False] * KEY_COUNT

    @staticmethod
    def resolve(key: KeyName) -> int:
        """
        Translate a key index or host key name into a CHIP-8 key index.

        Raises:
            ValueError: If the key is out of range or not mapped
        """
        if isinstance(key, bool):
            raise ValueError(f"invalid key: {key!r}")
        if isinstance(key, int):
            if not 0 <= key < KEY_COUNT:
                raise ValueError(f"key index out of range: {key}")
            return key

        index = QWERTY_KEY_MAP.get(key.upper())
        if index is None:
            raise ValueError(f"unknown key: {key!r}")
        return index

    def key_down(self, key: KeyName) -> None:
        """Press a key."""
        self._pressed[self.resolve(key)] = True

    def key_up(self, key: KeyName) -> None:
        """Release a key."""
        self._pressed[self.resolve(key)] = False

    def is_key_down(self, key: KeyName) -> bool:
        return self._pressed[self.resolve(key)]

    def release_all(self) -> None:
        self._pressed = [False] * KEY_COUNT

    def snapshot(self) -> Tuple[bool, ...]:
        """Current state as the 16-element vector handed to `Chip8.step`."""
        return tuple(self._pressed)
