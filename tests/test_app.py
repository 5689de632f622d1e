import io
import sqlite3

import pytest

from retsu.app import create_app
from retsu.config import hash_md5
from retsu.db import Database

SCHEMA = """
CREATE TABLE users (userid INTEGER, username TEXT, password TEXT, ranked_score INTEGER,
    accuracy REAL, playcount INTEGER, total_score INTEGER, `rank` INTEGER,
    lastonline TEXT, joindate TEXT);
CREATE TABLE restricts (bandate TEXT, userid INTEGER, bannedby TEXT, reason TEXT);
CREATE TABLE admins (userid INTEGER);
CREATE TABLE beatmaps (checksum TEXT, status TEXT);
CREATE TABLE scores (scoreid INTEGER, mapchecksum TEXT, username TEXT,
    OnlineScoreChecksum TEXT, Count300 INTEGER, Count100 INTEGER, Count50 INTEGER,
    CountGeki INTEGER, CountKatu INTEGER, CountMiss INTEGER, TotalScore INTEGER,
    MaxCombo INTEGER, Perfect INTEGER, Ranking TEXT, EnabledMods TEXT, Pass TEXT,
    Accuracy REAL);
"""

password = "password"
SCORE_LINE = "mapmd5:alice:onlinemd5:100:10:5:20:3:2:123456:300:True:A:0:True"


@pytest.fixture
def database():
    connection = sqlite3.connect(":memory:", check_same_thread=False)
    connection.executescript(SCHEMA)
    return Database(connection, "qmark")


@pytest.fixture
def client(database, tmp_path):
    app = create_app(database, tmp_path)
    app.testing = True
    return app.test_client()


def _submit(client, score_line, pass_hash):
    return client.post(
        "/web/osu-submit.php",
        query_string={"score": score_line, "pass": pass_hash},
        data={"score": (io.BytesIO(b"replay"), "replay.osr")},
        content_type="multipart/form-data",
    )


def test_index_page(client, tmp_path):
    web = tmp_path / "frontend" / "src" / "web"
    web.mkdir(parents=True)
    (web / "index.html").write_text("<h1>front</h1>")
    assert client.get("/").get_data(as_text=True) == "<h1>front</h1>"


def test_profile_page(client, tmp_path):
    web = tmp_path / "frontend" / "src" / "web"
    web.mkdir(parents=True)
    (web / "profile.html").write_text("profile page")
    assert client.get("/profile/alice").get_data(as_text=True) == "profile page"


def test_missing_page_is_404(client):
    assert client.get("/leaderboard").status_code == 404


def test_static_css(client, tmp_path):
    css = tmp_path / "frontend" / "src" / "web" / "css"
    css.mkdir(parents=True)
    (css / "site.css").write_text("body{}")
    assert client.get("/css/site.css").get_data(as_text=True) == "body{}"


def test_scores_unknown_map(client):
    assert client.get("/web/osu-getscores3.php", query_string={"c": "nomap"}).get_data(as_text=True) == "-1"


def test_submit_ranked_score(client, database, tmp_path):
    database.register_user("alice", password)
    database.set_status("mapmd5", "2")
    _submit(client, SCORE_LINE, hash_md5(password))
    replays = list((tmp_path / "frontend" / "replays").iterdir())
    assert [path.read_bytes() for path in replays] == [b"replay"]
    user = database.get_user("alice")
    assert user.play_count == 1
    assert user.ranked_score == 123456
    assert user.total_score == 123456
    board = client.get("/web/osu-getscores3.php", query_string={"c": "mapmd5"}).get_data(as_text=True)
    assert board.startswith("2\n")
    assert "|alice|123456|300|5|10|100|2|3|20|true|0|1|test" in board


def test_submit_wrong_password_is_ignored(client, database, tmp_path):
    database.register_user("alice", password)
    database.set_status("mapmd5", "2")
    _submit(client, SCORE_LINE, hash_md5("secret"))
    assert not (tmp_path / "frontend" / "replays").exists()
    assert database.get_user("alice").play_count == 0


def test_submit_unranked_map_is_ignored(client, database):
    database.register_user("alice", password)
    _submit(client, SCORE_LINE, hash_md5(password))
    assert database.get_new_score_id() == 0


def test_submit_malformed(client):
    assert _submit(client, "too:short", "x").status_code == 400


def test_replay_download(client, tmp_path):
    replays = tmp_path / "frontend" / "replays"
    replays.mkdir(parents=True)
    (replays / "7.osr").write_bytes(b"\x01\x02")
    response = client.get("/web/osu-getreplay.php", query_string={"c": "7"})
    assert response.data == b"\x01\x02"
    assert response.mimetype == "application/octet-stream"


def test_replay_missing(client):
    assert client.get("/web/osu-getreplay.php", query_string={"c": "9"}).status_code == 404


def test_avatar_and_default(client, tmp_path):
    frontend = tmp_path / "frontend"
    (frontend / "Avatars").mkdir(parents=True)
    (frontend / "Avatars" / "2.png").write_bytes(b"mine")
    (frontend / "avatar.png").write_bytes(b"default")
    assert client.get("/forum/download.php", query_string={"avatar": "2"}).data == b"mine"
    assert client.get("/forum/download.php", query_string={"avatar": "5"}).data == b"default"
    assert client.get("/forum/download.php", query_string={"avatar": "../avatar"}).data == b"default"


def test_api_routes_registered(client, database):
    database.register_user("alice", password)
    response = client.get("/api/v1/login", query_string={"u": "alice", "p": password})
    assert response.get_data(as_text=True) == "SUCCESS"
    assert client.get("/api/v1/isloggedin").get_data(as_text=True) == "Yes"