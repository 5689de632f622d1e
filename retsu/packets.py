"""Server-to-client packets of the game protocol."""

import struct
from contextlib import suppress

from .protocol import serialize_packet, write_osu_string

LOGIN_REPLY = 5
SEND_MESSAGE = 7
PING = 8
IRC_QUIT = 10
USER_STATS = 12
USER_QUIT = 13
ANNOUNCE = 25
MATCH_UPDATE = 27
DISBAND_MATCH = 29
MATCH_JOIN_SUCCESS = 37
MATCH_JOIN_FAIL = 38
MATCH_START = 47
MATCH_SCORE_UPDATE = 49
MATCH_ALL_PLAYERS_LOADED = 54
MATCH_COMPLETE = 59
MATCH_SKIP = 62
CHANNEL_JOIN_SUCCESS = 65


def _send(client, packet_id, payload=b""):
    """Frame and send a packet; absent clients and write failures are ignored."""
    if client is None:
        return
    with suppress(OSError):
        client.sendall(serialize_packet(packet_id, payload))


def write_announce(client, msg):
    """Send a server announcement."""
    _send(client, ANNOUNCE, write_osu_string(msg))


def write_channel_join_success(client, channel):
    """Tell the client it joined a channel."""
    _send(client, CHANNEL_JOIN_SUCCESS, write_osu_string(channel))


def write_disband_match(client, match_id):
    """Tell the client a match was disbanded."""
    _send(client, DISBAND_MATCH, struct.pack("<i", match_id))


def write_irc_quit(client, username):
    """Tell the client a user left chat."""
    _send(client, IRC_QUIT, write_osu_string(username))


def write_login_reply(client, response):
    """Send the login result: the user id, or a negative error code."""
    _send(client, LOGIN_REPLY, struct.pack("<i", response))


def write_match_all_players_loaded(client):
    """Tell the client every player has loaded the beatmap."""
    _send(client, MATCH_ALL_PLAYERS_LOADED)


def write_match_complete(client):
    """Tell the client the match has finished."""
    _send(client, MATCH_COMPLETE)


def write_match_join_fail(client):
    """Tell the client it could not join a match."""
    _send(client, MATCH_JOIN_FAIL)


def write_match_join_success(client, match):
    """Tell the client it joined a match, with the match state."""
    _send(client, MATCH_JOIN_SUCCESS, match.to_bytes())


def write_match_score_update(client, data):
    """Relay an encoded score frame."""
    _send(client, MATCH_SCORE_UPDATE, bytes(data))


def write_match_skip(client):
    """Tell the client the intro is skipped."""
    _send(client, MATCH_SKIP)


def write_match_start(client, match):
    """Tell the client the match starts, with the match state."""
    _send(client, MATCH_START, match.to_bytes())


def write_match_update(client, match):
    """Send the current state of a match."""
    _send(client, MATCH_UPDATE, match.to_bytes())


def write_ping(client):
    """Send a keep-alive ping."""
    _send(client, PING)


def write_message(client, sender, message, target):
    """Deliver a chat message."""
    payload = write_osu_string(sender) + write_osu_string(message) + write_osu_string(target)
    _send(client, SEND_MESSAGE, payload)


def write_user_quit(client, user_id):
    """Tell the client a user went offline."""
    _send(client, USER_QUIT, struct.pack("<i", user_id))


def get_status_update(player):
    """Encode a player's current status block."""
    status = player.status
    parts = [struct.pack("<B?", status.status & 0xFF, status.beatmap_update)]
    if status.beatmap_update:
        parts.append(write_osu_string(status.status_text))
        parts.append(write_osu_string(status.beatmap_checksum))
        parts.append(struct.pack("<H", status.current_mods & 0xFFFF))
    return b"".join(parts)


def write_user_stats(client, player, completeness):
    """Send a player's presence.

    Completeness 0 carries only the status, 1 adds the ranking figures and
    2 adds name, avatar name, timezone and country.
    """
    stats = player.stats
    parts = [struct.pack("<iB", stats.user_id, completeness), get_status_update(player)]
    if completeness > 0:
        parts.append(
            struct.pack(
                "<qfiqH",
                stats.ranked_score,
                stats.accuracy,
                stats.play_count,
                stats.total_score,
                stats.rank & 0xFFFF,
            )
        )
    if completeness == 2:
        parts.append(write_osu_string(player.username))
        parts.append(write_osu_string(str(stats.user_id)))
        parts.append(struct.pack("<B", player.timezone & 0xFF))
        parts.append(write_osu_string(player.country))
    _send(client, USER_STATS, b"".join(parts))