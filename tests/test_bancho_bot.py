import sqlite3

import pytest

from retsu import bancho_bot
from retsu.db import Database


@pytest.fixture
def database():
    conn = sqlite3.connect(":memory:")
    conn.executescript(
        """
        CREATE TABLE users (
            userid INTEGER, username TEXT, password TEXT, ranked_score INTEGER,
            accuracy REAL, playcount INTEGER, total_score INTEGER, "rank" INTEGER,
            lastonline TEXT, joindate TEXT
        );
        CREATE TABLE restricts (bandate TEXT, userid INTEGER, bannedby TEXT, reason TEXT);
        CREATE TABLE admins (userid INTEGER);
        CREATE TABLE beatmaps (checksum TEXT, status TEXT);
        INSERT INTO users VALUES (2, 'admin', 'x', 0, 0.0, 0, 0, 0, '2024-01-01 00:00:00', '2024-01-01 00:00:00');
        INSERT INTO users VALUES (3, 'player', 'x', 0, 0.0, 0, 0, 0, '2024-01-02 00:00:00', '2024-01-02 00:00:00');
        INSERT INTO admins VALUES (2);
        """
    )
    yield Database(conn, "qmark")
    conn.close()


def test_profile():
    bot = bancho_bot.generate_profile()
    assert bot.username == "BanchoBot"
    assert bot.stats.user_id == 1
    assert bot.stats.ranked_score == 1337
    assert bot.country == "Satelite"
    assert bot.timezone == 24
    assert bot.conn is None


def test_ping(database):
    assert bancho_bot.handle_msg(database, "player", "!ping", "#osu") == "Pong!"


def test_unknown_message(database):
    assert bancho_bot.handle_msg(database, "player", "hello", "#osu") == ""


def test_whoami(database):
    reply = bancho_bot.handle_msg(database, "admin", "!whoami", "#osu")
    assert reply == (
        "You are admin\nUserId: 2\nIsAdmin: true\nIsRestricted: false\n"
        "Join Date: 2024-01-01 00:00:00"
    )


@pytest.mark.parametrize("msg", ["!restrict player cheat", "!unrestrict player", "!updatebeatmapstatus abc 2"])
def test_commands_need_admin(database, msg):
    assert bancho_bot.handle_msg(database, "player", msg, "#osu") == "You are not an admin!"


def test_restrict_cycle(database):
    reply = bancho_bot.handle_msg(database, "admin", "!restrict player cheat", "#osu")
    assert reply == "Succesfully restricted player"
    assert database.is_restricted(3)
    reply = bancho_bot.handle_msg(database, "admin", "!restrict player cheat", "#osu")
    assert reply == "User is already restricted!"
    reply = bancho_bot.handle_msg(database, "admin", "!unrestrict player", "#osu")
    assert reply == "Succesfully removed restriction fromplayer"
    assert not database.is_restricted(3)
    reply = bancho_bot.handle_msg(database, "admin", "!unrestrict player", "#osu")
    assert reply == "User is not restricted!"


def test_missing_arguments(database):
    assert bancho_bot.handle_msg(database, "admin", "!restrict player", "#osu") == (
        "Missing arguments! correct command: !restrict <username> <reason(without spaces)>"
    )
    assert bancho_bot.handle_msg(database, "admin", "!unrestrict", "#osu") == (
        "Missing arguments! correct command: !restrict <username>"
    )
    assert bancho_bot.handle_msg(database, "admin", "!updatebeatmapstatus abc", "#osu") == (
        "Missing arguments! correct command: !updatebeatmapstatus <beatmapmd5> <newstatus>"
    )


def test_unknown_user(database):
    assert bancho_bot.handle_msg(database, "admin", "!restrict ghost cheat", "#osu") == "User does not exist!"
    assert bancho_bot.handle_msg(database, "admin", "!unrestrict ghost", "#osu") == "User does not exist!"


def test_update_beatmap_status(database):
    reply = bancho_bot.handle_msg(database, "admin", "!updatebeatmapstatus abc 2", "#osu")
    assert reply == "Successfully updated beatmap"
    assert database.is_ranked("abc")
    reply = bancho_bot.handle_msg(database, "admin", "!updatebeatmapstatus abc 2", "#osu")
    assert reply == "Map already has this status!"