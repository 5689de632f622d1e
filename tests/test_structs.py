import struct

import pytest

from retsu.protocol import ProtocolError, write_osu_string
from retsu.structs import (
    Match,
    Player,
    ScoreFrame,
    Status,
    UserStats,
    read_score_frame,
)


def _sample_match():
    return Match(
        match_id=3,
        in_progress=True,
        match_type=1,
        active_mods=-2,
        game_name="room",
        beatmap_name="song [hard]",
        beatmap_id=77,
        beatmap_checksum="abc",
        slot_status=[4, 8, 1, 1, 1, 1, 1, 2],
        slot_id=[10, 11, -1, -1, -1, -1, -1, -1],
    )


def test_match_defaults_are_open_slots():
    match = Match()
    assert match.slot_status == [1] * 8
    assert match.slot_id == [-1] * 8


def test_match_to_bytes_layout():
    match = _sample_match()
    data = match.to_bytes()
    assert struct.unpack("<B?Bh", data[:5]) == (3, True, 1, -2)
    assert data[5:5 + len(write_osu_string("room"))] == write_osu_string("room")
    assert list(struct.unpack("<8B", data[-40:-32])) == match.slot_status
    assert list(struct.unpack("<8i", data[-32:])) == match.slot_id


def test_match_round_trip_settings():
    source = _sample_match()
    target = Match()
    target.update_from_bytes(source.to_bytes())
    assert target.match_id == source.match_id
    assert target.in_progress is True
    assert target.match_type == source.match_type
    assert target.active_mods == source.active_mods
    assert target.game_name == source.game_name
    assert target.beatmap_name == source.beatmap_name
    assert target.beatmap_id == source.beatmap_id
    assert target.beatmap_checksum == source.beatmap_checksum
    assert target.slot_id == [-1] * 8


def test_match_update_truncated_leaves_match_unchanged():
    match = _sample_match()
    data = Match(match_id=9, game_name="other").to_bytes()[:7]
    with pytest.raises(ProtocolError):
        match.update_from_bytes(data)
    assert match.match_id == 3
    assert match.game_name == "room"


def test_player_defaults_and_identity():
    player = Player(username="someone")
    assert player.status == Status()
    assert player.stats == UserStats()
    assert player.current_match is None
    assert player != Player(username="someone")


def test_score_frame_round_trip():
    frame = ScoreFrame(
        time=123456,
        slot_id=2,
        count300=100,
        count100=20,
        count50=3,
        count_geki=7,
        count_katu=5,
        count_miss=1,
        total_score=987654,
        max_combo=150,
        current_combo=42,
        perfect=False,
        current_hp=200,
    )
    assert read_score_frame(frame.to_bytes()) == frame


def test_score_frame_tag_byte_written_not_read():
    frame = ScoreFrame(time=1, tag_byte=9)
    data = frame.to_bytes()
    assert data[-1] == 9
    parsed = read_score_frame(data)
    assert parsed.tag_byte == 0
    assert parsed.time == 1


def test_score_frame_truncated(capsys):
    data = ScoreFrame(time=55, slot_id=4, count300=9).to_bytes()[:6]
    parsed = read_score_frame(data)
    assert parsed.time == 55
    assert parsed.slot_id == 4
    assert parsed.count300 == 0
    assert parsed.total_score == 0
    assert "count300" in capsys.readouterr().out


def test_score_frame_empty():
    assert read_score_frame(b"") == ScoreFrame()