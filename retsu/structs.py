"""State objects shared by the game server: players, matches and score frames."""

import io
import struct
from dataclasses import dataclass, field

from .logs import log_err
from .protocol import ProtocolError, read_osu_string, write_osu_string

SLOT_COUNT = 8


def _read(stream, fmt):
    size = struct.calcsize(fmt)
    data = stream.read(size)
    if len(data) != size:
        raise ProtocolError("unexpected end of data")
    return struct.unpack(fmt, data)


@dataclass
class Status:
    """What a player is currently doing."""

    status: int = 0
    beatmap_update: bool = False
    status_text: str = ""
    beatmap_checksum: str = ""
    current_mods: int = 0


@dataclass
class UserStats:
    """Ranking figures of a user."""

    user_id: int = 0
    ranked_score: int = 0
    accuracy: float = 0.0
    play_count: int = 0
    total_score: int = 0
    rank: int = 0


@dataclass
class Match:
    """A multiplayer room.

    Slot statuses: 1 open, 2 locked, 4 not ready, 8 ready, 16 no map,
    32 playing, 64 complete. A slot id of -1 marks an empty slot.
    """

    match_id: int = 0
    in_progress: bool = False
    match_type: int = 0
    active_mods: int = 0
    game_name: str = ""
    beatmap_name: str = ""
    beatmap_id: int = 0
    beatmap_checksum: str = ""
    slot_status: list = field(default_factory=lambda: [1] * SLOT_COUNT)
    slot_id: list = field(default_factory=lambda: [-1] * SLOT_COUNT)
    loading_people: int = 0
    skipping_needed_to_skip: int = 0

    def to_bytes(self):
        """Serialize the match as sent in match packets."""
        return b"".join(
            [
                struct.pack("<B?Bh", self.match_id, self.in_progress, self.match_type, self.active_mods),
                write_osu_string(self.game_name),
                write_osu_string(self.beatmap_name),
                struct.pack("<i", self.beatmap_id),
                write_osu_string(self.beatmap_checksum),
                struct.pack(f"<{SLOT_COUNT}B", *self.slot_status),
                struct.pack(f"<{SLOT_COUNT}i", *self.slot_id),
            ]
        )

    def update_from_bytes(self, data):
        """Overwrite the settings fields from a client match payload.

        Slots are left untouched. Raises ProtocolError on truncated data.
        """
        stream = io.BytesIO(data)
        match_id, in_progress, match_type, active_mods = _read(stream, "<B?Bh")
        game_name = read_osu_string(stream)
        beatmap_name = read_osu_string(stream)
        (beatmap_id,) = _read(stream, "<i")
        beatmap_checksum = read_osu_string(stream)
        self.match_id = match_id
        self.in_progress = in_progress
        self.match_type = match_type
        self.active_mods = active_mods
        self.game_name = game_name
        self.beatmap_name = beatmap_name
        self.beatmap_id = beatmap_id
        self.beatmap_checksum = beatmap_checksum


@dataclass(eq=False)
class Player:
    """A connected (or simulated) client."""

    username: str
    status: Status = field(default_factory=Status)
    stats: UserStats = field(default_factory=UserStats)
    conn: object = None
    current_match: Match | None = None
    is_in_lobby: bool = False
    timezone: int = 0
    country: str = ""
    build: int = 0


_FRAME_FIELDS = (
    ("time", "<i"),
    ("slot_id", "<B"),
    ("count300", "<H"),
    ("count100", "<H"),
    ("count50", "<H"),
    ("count_geki", "<H"),
    ("count_katu", "<H"),
    ("count_miss", "<H"),
    ("total_score", "<i"),
    ("max_combo", "<H"),
    ("current_combo", "<H"),
    ("perfect", "<?"),
    ("current_hp", "<B"),
)
_FRAME_FORMAT = "<iBHHHHHHiHH?BB"


@dataclass
class ScoreFrame:
    """A live score update sent during a multiplayer game."""

    time: int = 0
    slot_id: int = 0
    count300: int = 0
    count100: int = 0
    count50: int = 0
    count_geki: int = 0
    count_katu: int = 0
    count_miss: int = 0
    total_score: int = 0
    max_combo: int = 0
    current_combo: int = 0
    perfect: bool = False
    current_hp: int = 0
    tag_byte: int = 0

    def to_bytes(self):
        """Serialize the frame, tag byte included."""
        return struct.pack(
            _FRAME_FORMAT,
            self.time,
            self.slot_id,
            self.count300,
            self.count100,
            self.count50,
            self.count_geki,
            self.count_katu,
            self.count_miss,
            self.total_score,
            self.max_combo,
            self.current_combo,
            self.perfect,
            self.current_hp,
            self.tag_byte,
        )


def read_score_frame(data):
    """Parse a score frame from a client payload.

    Fields that do not fit in the data are logged and left at zero; the tag
    byte is never read.
    """
    frame = ScoreFrame()
    offset = 0
    for name, fmt in _FRAME_FIELDS:
        size = struct.calcsize(fmt)
        if len(data) - offset < size:
            log_err("Error occurred on %s creation: unexpected end of data", name)
            offset = len(data)
            continue
        (value,) = struct.unpack_from(fmt, data, offset)
        setattr(frame, name, value)
        offset += size
    return frame