"""Submitted score records as sent by the client."""

import re
import struct
from dataclasses import dataclass

_INTEGER = re.compile(r"[+-]?[0-9]+")
_INT64_MIN = -(2**63)
_INT64_MAX = 2**63 - 1
_TRUE = {"1", "t", "T", "TRUE", "true", "True"}
_FALSE = {"0", "f", "F", "FALSE", "false", "False"}
_FIELD_COUNT = 15


@dataclass
class Score:
    """A score line submitted by the client."""

    file_checksum: str = ""
    username: str = ""
    online_score_checksum: str = ""
    count300: int = 0
    count100: int = 0
    count50: int = 0
    count_geki: int = 0
    count_katu: int = 0
    count_miss: int = 0
    total_score: int = 0
    max_combo: int = 0
    perfect: bool = False
    ranking: str = ""
    enabled_mods: str = ""
    passed: str = ""


def _parse_int(val):
    if not _INTEGER.fullmatch(val):
        return None
    number = int(val)
    if not _INT64_MIN <= number <= _INT64_MAX:
        return None
    return number


def _wrap_int32(number):
    return (number + 2**31) % 2**32 - 2**31


def get_int(val):
    """Parse a decimal integer truncated to 32 bits; 0 if it is not one."""
    number = _parse_int(val)
    return 0 if number is None else _wrap_int32(number)


def get_int64(val):
    """Parse a 64-bit decimal integer; 0 if it is not one."""
    number = _parse_int(val)
    return 0 if number is None else number


def get_bool(val):
    """Parse a boolean spelling such as "True" or "1"; False otherwise."""
    if val in _TRUE:
        return True
    return False


def formatted_to_score(formatted):
    """Build a Score from its colon separated wire form."""
    values = formatted.split(":")
    if len(values) < _FIELD_COUNT:
        raise ValueError(
            f"score needs {_FIELD_COUNT} fields, got {len(values)}"
        )
    return Score(
        file_checksum=values[0],
        username=values[1],
        online_score_checksum=values[2],
        count300=get_int(values[3]),
        count100=get_int(values[4]),
        count50=get_int(values[5]),
        count_geki=get_int(values[6]),
        count_katu=get_int(values[7]),
        count_miss=get_int(values[8]),
        total_score=get_int64(values[9]),
        max_combo=get_int(values[10]),
        perfect=get_bool(values[11]),
        ranking=values[12],
        enabled_mods=values[13],
        passed=values[14],
    )


def _float32(value):
    return struct.unpack("<f", struct.pack("<f", value))[0]


def calculate_accuracy(score):
    """Return accuracy in the range 0..1 with single precision."""
    points = _float32(
        score.count50 * 50
        + score.count100 * 100
        + score.count300 * 300
        + score.count_geki * 300
        + score.count_katu * 100
    )
    hits = _float32(
        score.count50
        + score.count100
        + score.count300
        + score.count_geki
        + score.count_katu
        + score.count_miss
    )
    if hits > 0:
        return _float32(points / _float32(hits * 300))
    return 0.0