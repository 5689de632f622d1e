"""Persistent storage of users, scores, restrictions and beatmap states."""

import threading
from contextlib import closing
from dataclasses import dataclass
from datetime import date, datetime

from .config import hash_md5
from .logs import log_err, log_warning
from .scores import calculate_accuracy
from .structs import UserStats

DEFAULT_HOST = "127.0.0.1"
DEFAULT_USER = "test"
PASSWORD = "password"
DEFAULT_DATABASE = "osu!"

_TIME_FORMAT = "%Y-%m-%d %H:%M:%S"
_RANKED_STATUSES = ("2", "3")
_TOP_USERS_LIMIT = 100


class UserExistsError(ValueError):
    """Raised when registering a name that is already taken."""


@dataclass
class User:
    """A user's public profile row."""

    username: str = ""
    user_id: int = 0
    ranked_score: int = 0
    accuracy: float = 0.0
    play_count: int = 0
    total_score: int = 0
    rank: int = 0
    join_date: str = ""
    last_online: str = ""


def _now():
    return datetime.now().strftime(_TIME_FORMAT)


def _text(value):
    if value is None:
        return ""
    if isinstance(value, datetime):
        return value.strftime(_TIME_FORMAT)
    if isinstance(value, date):
        return value.isoformat()
    if isinstance(value, bytes):
        return value.decode("utf-8", errors="replace")
    return str(value)


def _int(value):
    return 0 if value is None else int(value)


def _float(value):
    return 0.0 if value is None else float(value)


def connect(host=DEFAULT_HOST, user=DEFAULT_USER, password=PASSWORD, database=DEFAULT_DATABASE):
    """Open a MySQL connection and wrap it in a Database."""
    import pymysql

    connection = pymysql.connect(
        host=host,
        user=user,
        password=password,
        database=database,
        autocommit=True,
    )
    return Database(connection, "format")


class Database:
    """Queries over a DB-API connection holding the server's tables."""

    def __init__(self, connection, paramstyle="format"):
        if paramstyle not in ("qmark", "format", "pyformat"):
            raise ValueError(f"unsupported paramstyle: {paramstyle}")
        self._connection = connection
        self._paramstyle = paramstyle
        self._lock = threading.RLock()

    def _sql(self, sql):
        if self._paramstyle == "qmark":
            return sql
        return sql.replace("?", "%s")

    def _fetch(self, sql, params=()):
        with self._lock, closing(self._connection.cursor()) as cursor:
            cursor.execute(self._sql(sql), tuple(params))
            return cursor.fetchall()

    def _execute(self, sql, params=()):
        with self._lock, closing(self._connection.cursor()) as cursor:
            cursor.execute(self._sql(sql), tuple(params))
            self._connection.commit()

    def _exists(self, sql, params):
        return len(self._fetch(sql, params)) > 0

    def get_join_date(self, username):
        """Return the user's join date, or "unknown"."""
        rows = self._fetch("SELECT joindate FROM users WHERE username = ?", (username,))
        return _text(rows[0][0]) if rows else "unknown"

    def get_user_stats(self, username, password):
        """Return ranking stats for matching credentials; user_id is -1 if none match."""
        rows = self._fetch(
            "SELECT userid, ranked_score, accuracy, playcount, total_score, `rank` "
            "FROM users WHERE username = ? AND password = ?",
            (username, password),
        )
        if not rows:
            return UserStats(user_id=-1)
        user_id, ranked, accuracy, plays, total, rank = rows[0]
        return UserStats(
            user_id=_int(user_id),
            ranked_score=_int(ranked),
            accuracy=_float(accuracy),
            play_count=_int(plays),
            total_score=_int(total),
            rank=_int(rank),
        )

    def get_user(self, username):
        """Return a user's profile; user_id is -1 if there is no such user."""
        rows = self._fetch(
            "SELECT userid, username, ranked_score, accuracy, playcount, total_score, "
            "`rank`, lastonline, joindate FROM users WHERE username = ?",
            (username,),
        )
        if not rows:
            return User(user_id=-1)
        user_id, name, ranked, accuracy, plays, total, rank, last_online, joined = rows[0]
        return User(
            username=_text(name),
            user_id=_int(user_id),
            ranked_score=_int(ranked),
            accuracy=_float(accuracy),
            play_count=_int(plays),
            total_score=_int(total),
            rank=_int(rank),
            join_date=_text(joined),
            last_online=_text(last_online),
        )

    def register_user(self, username, password):
        """Create a user with a hashed password; raise UserExistsError if taken."""
        if self.is_name_taken(username):
            raise UserExistsError("User already taken!")
        now = _now()
        self._execute(
            "INSERT INTO users (userid, username, password, ranked_score, accuracy, "
            "playcount, total_score, `rank`, lastonline, joindate) "
            "VALUES (?, ?, ?, 0, 0.0, 0, 0, 0, ?, ?)",
            (self.get_new_user_id(), username, hash_md5(password), now, now),
        )

    def is_name_taken(self, username):
        """Return True if a user with this name exists."""
        return self._exists("SELECT * FROM users WHERE username = ?", (username,))

    def is_correct_cred(self, username, password):
        """Return True if the name and stored password hash match."""
        return self._exists(
            "SELECT * FROM users WHERE username = ? AND password = ?", (username, password)
        )

    def set_username(self, username, new_username):
        """Rename a user unless the new name is taken."""
        if self.is_name_taken(new_username):
            return False
        self._execute(
            "UPDATE `users` SET `username` = ? WHERE username = ?", (new_username, username)
        )
        return True

    def set_password(self, username, current_password, new_password):
        """Replace the stored password if the current one matches."""
        if not self.is_correct_cred(username, current_password):
            return False
        self._execute(
            "UPDATE `users` SET `password` = ? WHERE username = ?", (new_password, username)
        )
        return True

    def get_user_id_by_username(self, username):
        """Return the user's id, or -1."""
        rows = self._fetch("SELECT userid FROM users WHERE username = ?", (username,))
        if not rows:
            return -1
        try:
            return int(rows[0][0])
        except (TypeError, ValueError):
            return -1

    def is_restricted(self, user_id):
        """Return True if the user has a restriction entry."""
        return self._exists("SELECT * FROM restricts WHERE userid = ?", (user_id,))

    def get_new_user_id(self):
        """Return the id given to the next registered user."""
        new_id = len(self._fetch("SELECT * FROM users")) + 2
        log_warning("%d", new_id)
        return new_id

    def get_new_score_id(self):
        """Return the id given to the next submitted score."""
        return len(self._fetch("SELECT * FROM scores"))

    def insert_score(self, score, score_id):
        """Store a submitted score with its computed accuracy."""
        self._execute(
            "INSERT INTO `scores`(`scoreid`, `mapchecksum`, `username`, `OnlineScoreChecksum`, "
            "`Count300`, `Count100`, `Count50`, `CountGeki`, `CountKatu`, `CountMiss`, "
            "`TotalScore`, `MaxCombo`, `Perfect`, `Ranking`, `EnabledMods`, `Pass`, `Accuracy`) "
            "VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)",
            (
                score_id,
                score.file_checksum,
                score.username,
                score.online_score_checksum,
                score.count300,
                score.count100,
                score.count50,
                score.count_geki,
                score.count_katu,
                score.count_miss,
                score.total_score,
                score.max_combo,
                score.perfect,
                score.ranking,
                score.enabled_mods,
                score.enabled_mods,
                calculate_accuracy(score),
            ),
        )

    def get_scores(self, map_checksum):
        """Return the leaderboard lines of a map: each user's best, highest first."""
        rows = self._fetch(
            """
            SELECT s.scoreid, s.Username, s.TotalScore, s.MaxCombo, s.Count50,
                   s.Count100, s.Count300, s.CountMiss, s.CountKatu, s.CountGeki,
                   s.Perfect, s.EnabledMods
            FROM scores AS s
            INNER JOIN (
                SELECT Username, MAX(TotalScore) AS MaxScore
                FROM scores
                WHERE mapchecksum = ?
                GROUP BY Username
            ) AS maxScores ON s.Username = maxScores.Username
                          AND s.TotalScore = maxScores.MaxScore
            WHERE s.mapchecksum = ?
            ORDER BY s.TotalScore DESC
            """,
            (map_checksum, map_checksum),
        )
        lines = []
        for row in rows:
            try:
                score_id, name, total, combo, c50, c100, c300, miss, katu, geki, perfect, mods = row
                numbers = [int(v) for v in (score_id, total, combo, c50, c100, c300, miss, katu, geki)]
            except (TypeError, ValueError) as exc:
                log_err("Error scanning row: %s", exc)
                continue
            score_id, total, combo, c50, c100, c300, miss, katu, geki = numbers
            lines.append(
                f"\n{score_id}|{_text(name)}|{total}|{combo}|{c50}|{c100}|{c300}|{miss}"
                f"|{katu}|{geki}|{'true' if perfect else 'false'}|{_text(mods)}"
                f"|{len(lines) + 1}|test"
            )
        return "".join(lines)

    def update_ranked_score(self, username):
        """Set ranked score to the sum of the user's best score on each map."""
        rows = self._fetch(
            "SELECT mapchecksum, MAX(TotalScore) AS MaxScore FROM scores "
            "WHERE Username = ? GROUP BY mapchecksum ORDER BY MaxScore DESC",
            (username,),
        )
        ranked = sum(_int(best) for _, best in rows)
        self._execute("UPDATE `users` SET `ranked_score` = ? WHERE username = ?", (ranked, username))

    def update_accuracy(self, username):
        """Set accuracy to the hit-weighted average over the user's scores."""
        rows = self._fetch(
            "SELECT SUM(Accuracy * (Count300 + Count100 + Count50 + CountMiss)) / "
            "SUM(Count300 + Count100 + Count50 + CountMiss) AS total_accuracy "
            "FROM scores WHERE username = ?",
            (username,),
        )
        accuracy = 0.0
        for (value,) in rows:
            if value is None:
                log_err("Error scanning row: %s", "accuracy is NULL")
                continue
            accuracy = float(value)
        self._execute("UPDATE `users` SET `accuracy` = ? WHERE username = ?", (accuracy, username))

    def update_rank(self, username):
        """Set the user's rank to their position by ranked score."""
        rows = self._fetch("SELECT username FROM users ORDER BY ranked_score DESC")
        for position, (name,) in enumerate(rows, start=1):
            if _text(name) == username:
                self._execute("UPDATE `users` SET `rank` = ? WHERE username = ?", (position, username))
                return

    def update_total_score(self, username):
        """Set total score to the sum of all the user's scores."""
        rows = self._fetch(
            "SELECT mapchecksum, TotalScore FROM scores WHERE Username = ?", (username,)
        )
        total = sum(_int(value) for _, value in rows)
        self._execute("UPDATE `users` SET `total_score` = ? WHERE username = ?", (total, username))

    def update_playcount(self, username):
        """Set play count to the number of the user's stored scores."""
        rows = self._fetch(
            "SELECT mapchecksum, TotalScore FROM scores WHERE Username = ?", (username,)
        )
        self._execute("UPDATE `users` SET `playcount` = ? WHERE username = ?", (len(rows), username))

    def is_admin(self, user_id):
        """Return True if the user is an administrator."""
        return self._exists("SELECT * FROM admins WHERE userid = ?", (user_id,))

    def get_map_status(self, checksum):
        """Return a beatmap's status code as text; "-1" when not submitted.

        Codes: -1 not submitted, 0 pending, 1 update available, 2 ranked, 3 approved.
        """
        rows = self._fetch("SELECT status FROM beatmaps WHERE checksum = ?", (checksum,))
        return _text(rows[0][0]) if rows else "-1"

    def is_ranked(self, checksum):
        """Return True for ranked or approved beatmaps."""
        return self.get_map_status(checksum) in _RANKED_STATUSES

    def get_top_users(self):
        """Return up to 100 users by ranked score, with values as text."""
        rows = self._fetch(
            "SELECT username, ranked_score, total_score, accuracy FROM users "
            f"ORDER BY ranked_score DESC LIMIT {_TOP_USERS_LIMIT}"
        )
        top = []
        for name, ranked, total, accuracy in rows:
            try:
                entry = {
                    "rank": str(len(top) + 1),
                    "Username": _text(name),
                    "RankedScore": str(int(ranked)),
                    "TotalScore": str(int(total)),
                    "Accuracy": f"{float(accuracy):.2f}",
                }
            except (TypeError, ValueError) as exc:
                log_err("Error scanning row: %s", exc)
                continue
            top.append(entry)
        return top

    def update_last_online(self, username):
        """Stamp the user's last online time with now."""
        self._execute("UPDATE `users` SET `lastonline` = ? WHERE username = ?", (_now(), username))

    def does_exist(self, username):
        """Return True if the user exists."""
        return self.is_name_taken(username)

    def unrestrict_user(self, username):
        """Remove every restriction of a user."""
        user_id = self.get_user_id_by_username(username)
        self._execute("DELETE FROM restricts WHERE userid = ?", (user_id,))

    def restrict_user(self, username, admin, reason):
        """Record a restriction of a user by an admin."""
        user_id = self.get_user_id_by_username(username)
        self._execute(
            "INSERT INTO `restricts`(`bandate`, `userid`, `bannedby`, `reason`) VALUES (?, ?, ?, ?)",
            (_now(), user_id, admin, reason),
        )

    def does_map_exist(self, checksum):
        """Return True if the beatmap has a stored status."""
        return self._exists("SELECT status FROM beatmaps WHERE checksum = ?", (checksum,))

    def set_status(self, checksum, new_status):
        """Set a beatmap's status and return a message for the admin."""
        if new_status == self.get_map_status(checksum):
            return "Map already has this status!"
        if self.does_map_exist(checksum):
            self._execute(
                "UPDATE `beatmaps` SET `status` = ? WHERE checksum = ?", (new_status, checksum)
            )
        else:
            self._execute(
                "INSERT INTO `beatmaps`(`checksum`, `status`) VALUES (?, ?)", (checksum, new_status)
            )
        return "Successfully updated beatmap"