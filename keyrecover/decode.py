"""
Decoding of product keys packed into binary registry values.

A product key is 25 symbols from a 24 character alphabet. It is stored as a 15 byte little-endian integer, usually
at a fixed offset within a larger DigitalProductId blob. Decoding is a plain base 256 to base 24 conversion done by
repeated long division over the byte array, so no integer wider than 16 bits is ever required.

This is an obfuscation, not encryption, and there is no checksum: any 15 bytes that are not all zero will decode to
a well formed key.
"""

import typing

import keyrecover
from keyrecover.util.logging import get_logger


_LOGGER = get_logger(__name__)


# Symbols used for product keys, vowels and easily confused characters are excluded
KEY_CHARS = 'BCDFGHJKMPQRTVWXY2346789'

KEY_BASE = len(KEY_CHARS)

# Number of symbols in a key, hyphens are inserted between groups of KEY_GROUP_LENGTH symbols
KEY_LENGTH = 25
KEY_GROUP_LENGTH = 5
KEY_SEPARATOR = '-'

# Length of a decoded key including separators
KEY_DISPLAY_LENGTH = KEY_LENGTH + KEY_LENGTH // KEY_GROUP_LENGTH - 1

# Length of an encoded key
SEGMENT_LENGTH = 15

# Offset of the encoded key in the legacy DigitalProductId layout, and the lowest offset searched when that fails
SEGMENT_OFFSET = 52
SEARCH_OFFSET = 40

# Smallest buffer that contains the canonical segment
MIN_BUFFER_LENGTH = SEGMENT_OFFSET + SEGMENT_LENGTH


class KeyFormatError(keyrecover.ApplicationException):
    """ Exception thrown when a key string cannot be packed into a segment. """
    pass


def _divide_segment(working: bytearray) -> int:
    """ Divide the little-endian integer held in working by KEY_BASE in place.

    :param working: mutable segment, overwritten with the quotient
    :return: remainder
    """
    acc = 0

    for j in range(len(working) - 1, -1, -1):
        # acc < KEY_BASE on entry, so this never exceeds KEY_BASE * 256 (fits in 16 bits)
        acc = acc * 256 + working[j]
        working[j] = acc // KEY_BASE
        acc %= KEY_BASE

    return acc


def decode_segment(segment: typing.Union[bytes, bytearray]) -> str:
    """ Decode a 15 byte segment into a product key of the form XXXXX-XXXXX-XXXXX-XXXXX-XXXXX.

    Returns an empty string if the segment has the wrong length or is blank (all zero). Values of 24 ** 25 or more,
    such as segments carrying the Windows 8 flag bit in the top byte, keep only their lowest 25 symbols. The provided
    segment is never modified.

    :param segment: encoded key
    :return: decoded key, or empty string if segment is not a valid key
    """
    if len(segment) != SEGMENT_LENGTH:
        return ''

    if not any(segment):
        # Blank key slot
        return ''

    working = bytearray(segment)
    decoded = ''

    for remaining in range(KEY_LENGTH - 1, -1, -1):
        decoded = KEY_CHARS[_divide_segment(working)] + decoded

        if remaining % KEY_GROUP_LENGTH == 0 and remaining != 0:
            decoded = KEY_SEPARATOR + decoded

    if len(decoded) != KEY_DISPLAY_LENGTH:
        return ''

    return decoded


def encode_key(key: str) -> bytes:
    """ Pack a product key back into a 15 byte segment, the inverse of decode_segment.

    :param key: product key, separators are optional
    :return: encoded segment
    :raises KeyFormatError: if key has the wrong length or contains symbols outside of KEY_CHARS
    """
    symbols = key.replace(KEY_SEPARATOR, '').upper()

    if len(symbols) != KEY_LENGTH:
        raise KeyFormatError(f"Key must contain {KEY_LENGTH} symbols, got {len(symbols)}")

    value = 0

    for symbol in symbols:
        digit = KEY_CHARS.find(symbol)

        if digit < 0:
            raise KeyFormatError(f"Invalid symbol {symbol!r} in key")

        value = value * KEY_BASE + digit

    return value.to_bytes(SEGMENT_LENGTH, 'little')


def locate_key(buffer: typing.Union[bytes, bytearray]) -> str:
    """ Find and decode the product key held in a DigitalProductId style buffer.

    The segment at SEGMENT_OFFSET is tried first. If that does not decode then every window from SEARCH_OFFSET to the
    end of the buffer is tried in ascending order and the first to decode is returned. Several windows may decode, the
    lowest offset is always preferred.

    :param buffer: raw registry value
    :return: decoded key, or empty string if no key could be found
    """
    if len(buffer) < MIN_BUFFER_LENGTH:
        _LOGGER.debug(f"Buffer too short to hold a key ({len(buffer)} < {MIN_BUFFER_LENGTH} bytes)")
        return ''

    key = decode_segment(buffer[SEGMENT_OFFSET:SEGMENT_OFFSET + SEGMENT_LENGTH])

    if key:
        return key

    _LOGGER.debug(f"No key at offset {SEGMENT_OFFSET}, searching {len(buffer)} byte buffer from offset {SEARCH_OFFSET}")

    for offset in range(SEARCH_OFFSET, len(buffer) - SEGMENT_LENGTH + 1):
        key = decode_segment(buffer[offset:offset + SEGMENT_LENGTH])

        if key:
            _LOGGER.debug(f"Found key at offset {offset}")
            return key

        _LOGGER.debug_scan(f"No key at offset {offset}")

    return ''
