"""Low level encoding of the game client's binary protocol."""

import struct

_HEADER = struct.Struct("<h?i")
_STRING_PREFIX = 0x0B


class ProtocolError(ValueError):
    """Raised when protocol data is truncated or malformed."""


def serialize_packet(packet, data):
    """Frame data as a packet: id, compression flag, length, payload."""
    data = bytes(data)
    return _HEADER.pack(packet, False, len(data)) + data


def write_uleb128(value):
    """Encode a non-negative integer as unsigned LEB128."""
    if value == 0:
        return b"\x00"
    out = bytearray()
    while value > 0:
        byte = value & 0x7F
        value >>= 7
        if value:
            byte |= 0x80
        out.append(byte)
    return bytes(out)


def write_osu_string(value):
    """Encode a string: 0x00 when empty, else 0x0B, length and UTF-8 bytes."""
    if not value:
        return b"\x00"
    encoded = value.encode("utf-8")
    return bytes([_STRING_PREFIX]) + write_uleb128(len(encoded)) + encoded


def _read_exact(stream, size):
    data = stream.read(size)
    if len(data) != size:
        raise ProtocolError("unexpected end of data")
    return data


def read_uleb128(stream):
    """Decode an unsigned LEB128 integer from a binary stream."""
    result = 0
    shift = 0
    while True:
        byte = _read_exact(stream, 1)[0]
        result |= (byte & 0x7F) << shift
        if not byte & 0x80:
            return result
        shift += 7


def read_osu_string(stream):
    """Decode a string written by write_osu_string from a binary stream."""
    prefix = _read_exact(stream, 1)[0]
    if prefix == 0x00:
        return ""
    if prefix == _STRING_PREFIX:
        length = read_uleb128(stream)
        return _read_exact(stream, length).decode("utf-8", errors="replace")
    raise ProtocolError(f"invalid osu! string prefix: {prefix:x}")