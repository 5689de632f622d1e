"""The game server: logins, chat, presence and multiplayer matches."""

import io
import socket
import struct
import threading
from dataclasses import dataclass

from . import bancho_bot, packets
from .geo import get_country_from_ip
from .logs import log_err, log_info, log_warning
from .protocol import ProtocolError, read_osu_string
from .structs import SLOT_COUNT, Match, Player, Status, read_score_frame

DEFAULT_HOST = "0.0.0.0"
DEFAULT_PORT = 13381
MAIN_CHANNEL = "#osu"

_HEADER = struct.Struct("<h?i")
_MAX_DATA_LENGTH = 4096
_LOGIN_BUFFER = 1024
_KEEPALIVE_SECONDS = 5.0

_SLOT_OPEN = 1
_SLOT_NOT_READY = 4
_SLOT_READY = 8
_SLOT_PLAYING = 32


@dataclass
class LoginRequest:
    """The credentials and client details sent when connecting."""

    username: str
    password: str
    build: int
    build_name: str
    timezone: int


def _parse_int(text, base=10):
    try:
        return int(text.strip(), base)
    except ValueError:
        return 0


def parse_login(data):
    """Parse the login block: user name, password hash and client info lines.

    Raises ValueError when a line or field is missing.
    """
    if isinstance(data, bytes):
        data = data.decode("utf-8", errors="replace")
    lines = data.split("\n")
    if len(lines) < 3:
        raise ValueError("login data needs three lines")
    info = lines[2].split("|")
    if len(info) < 2:
        raise ValueError("client info line is malformed")
    build_name = info[0]
    return LoginRequest(
        username=lines[0].strip(),
        password=lines[1].strip(),
        build=_parse_int(build_name.replace("b", "", 1), 0),
        build_name=build_name,
        timezone=_parse_int(info[1]),
    )


def find_user_slot_in_match(user_id, match):
    """Return the slot the user occupies, -1 if none, 0 when there is no match."""
    if match is None:
        return 0
    try:
        return match.slot_id.index(user_id)
    except ValueError:
        return -1


def find_slot_for_player(match):
    """Return the first free slot, -1 if full, 0 when there is no match."""
    if match is None:
        return 0
    return find_user_slot_in_match(-1, match)


def count_players_in_match(match):
    """Return how many slots are occupied."""
    return sum(1 for user_id in match.slot_id if user_id != -1)


def _read(stream, fmt):
    size = struct.calcsize(fmt)
    chunk = stream.read(size)
    if len(chunk) != size:
        raise ProtocolError("unexpected end of data")
    return struct.unpack(fmt, chunk)


def _recv_exact(conn, size):
    chunks = []
    remaining = size
    while remaining:
        chunk = conn.recv(remaining)
        if not chunk:
            raise ConnectionError("connection closed")
        chunks.append(chunk)
        remaining -= len(chunk)
    return b"".join(chunks)


class BanchoServer:
    """Keeps the online players and open matches and serves game clients."""

    def __init__(self, database, country_lookup=get_country_from_ip):
        self.database = database
        self.country_lookup = country_lookup
        self.players = {}
        self.matches = {}
        self._lock = threading.RLock()

    # Networking

    def serve(self, host=DEFAULT_HOST, port=DEFAULT_PORT):
        """Listen for clients forever, one thread per connection."""
        with socket.create_server((host, port)) as listener:
            log_info("Socket listening for clients on %s:%d", host, port)
            log_info("Lets play osu!")
            self.add_player(bancho_bot.generate_profile())
            while True:
                try:
                    conn, address = listener.accept()
                except OSError as exc:
                    log_err(str(exc))
                    return
                log_info("Client connected, Welcome")
                threading.Thread(
                    target=self.handle_client, args=(conn, address), daemon=True
                ).start()

    def handle_client(self, conn, address):
        """Run one client's session from login until it disconnects."""
        stop = threading.Event()
        try:
            player = self._login(conn, address)
            if player is None:
                return
            threading.Thread(
                target=self._keepalive, args=(player, stop), daemon=True
            ).start()
            self._packet_loop(player)
        finally:
            stop.set()
            try:
                conn.close()
            except OSError:
                pass

    def _login(self, conn, address):
        try:
            initial = conn.recv(_LOGIN_BUFFER)
        except OSError as exc:
            log_err("Error reading login info %s", exc)
            return None
        if not initial:
            log_err("Error reading login info: connection closed")
            return None
        try:
            login = parse_login(initial)
        except ValueError as exc:
            log_err("Malformed login: %s", exc)
            return None
        ip = address[0] if address else ""
        try:
            country = self.country_lookup(ip)
        except (OSError, ValueError) as exc:
            log_err("Error getting country for %s: %s", login.username, exc)
            return None
        stats = self.database.get_user_stats(login.username, login.password)
        player = Player(
            username=login.username,
            status=Status(),
            stats=stats,
            conn=conn,
            is_in_lobby=False,
            timezone=(24 + login.timezone) & 0xFF,
            country=country,
            build=login.build,
        )
        player.password = login.password
        if stats.user_id < 1:
            log_info(login.username + " attempted to login with invalid password")
            packets.write_login_reply(conn, -1)
            return None
        log_info(login.username + " logged in on build " + login.build_name)
        packets.write_login_reply(conn, stats.user_id)
        packets.write_channel_join_success(conn, MAIN_CHANNEL)
        if self.database.is_restricted(stats.user_id):
            packets.write_message(
                conn,
                bancho_bot.BOT_NAME,
                "You are restricted, because of that you can't submit any new scores",
                player.username,
            )
        self.database.update_last_online(player.username)
        self.add_player(player)
        packets.write_announce(conn, "Welcome to bancho, Mr. " + player.username)
        with self._lock:
            for other in list(self.players.values()):
                packets.write_user_stats(other.conn, player, 2)
            for other in list(self.players.values()):
                packets.write_user_stats(player.conn, other, 2)
        return player

    def _keepalive(self, player, stop):
        while not stop.wait(_KEEPALIVE_SECONDS):
            fresh = self.database.get_user_stats(player.username, player.password)
            old = player.stats
            if (
                fresh.accuracy != old.accuracy
                or fresh.play_count != old.play_count
                or fresh.ranked_score != old.ranked_score
                or fresh.rank != old.rank
                or fresh.total_score != old.total_score
            ):
                player.stats = fresh
                with self._lock:
                    for other in list(self.players.values()):
                        packets.write_user_stats(other.conn, player, 2)
            packets.write_ping(player.conn)

    def _packet_loop(self, player):
        conn = player.conn
        while True:
            try:
                header = _recv_exact(conn, _HEADER.size)
            except OSError as exc:
                log_err("Error reading from client: %s", exc)
                self.remove_player(player.username, player.stats.user_id)
                return
            packet_type, _compression, length = _HEADER.unpack(header)
            if length < 0 or length > _MAX_DATA_LENGTH:
                print(f"Invalid data length: {length}")
                if length < 0:
                    return
            try:
                data = _recv_exact(conn, length)
            except OSError as exc:
                log_err("Failed to read packet data: %s", exc)
                return
            try:
                if not self.handle_packet(player, packet_type, data):
                    return
            except ProtocolError as exc:
                log_err("Malformed packet %d: %s", packet_type, exc)
                return

    # Packet dispatch

    def handle_packet(self, player, packet_type, data):
        """Act on one client packet; return False when the session should end.

        Raises ProtocolError on malformed match payloads.
        """
        match = player.current_match
        if packet_type == 0:
            self.handle_status(player, data)
        elif packet_type == 1:
            self.handle_msg(player, data)
        elif packet_type == 2:
            self.remove_player(player.username, player.stats.user_id)
            return False
        elif packet_type == 3:
            packets.write_user_stats(player.conn, player, 2)
        elif packet_type == 4:
            pass
        elif packet_type == 21:
            try:
                report = read_osu_string(io.BytesIO(data))
            except ProtocolError as exc:
                log_err(str(exc))
            else:
                log_info("Osu! reported an error: %s", report)
        elif packet_type == 30:
            player.is_in_lobby = False
        elif packet_type == 31:
            player.is_in_lobby = True
            with self._lock:
                for open_match in list(self.matches.values()):
                    packets.write_match_update(player.conn, open_match)
        elif packet_type == 32:
            self._create_match(player, data)
        elif packet_type == 33:
            (match_id,) = _read(io.BytesIO(data), "<B")
            log_info("Player %s joined match %d", player.username, match_id)
            target = self.find_match_by_id(match_id)
            player.current_match = target
            if self.join_match(player, target):
                player.is_in_lobby = False
        elif packet_type == 34:
            self.part_match(player, match)
            player.current_match = None
        elif packet_type == 40:
            self._ready(player, match)
        elif packet_type == 42:
            if match is not None:
                match.update_from_bytes(data)
                self._broadcast_match_update(match)
        elif packet_type == 45:
            self._start_match(match)
        elif packet_type == 48:
            self._score_update(player, match, data)
        elif packet_type == 50:
            self._complete_match(match)
        elif packet_type == 52:
            (mods,) = _read(io.BytesIO(data), "<h")
            if match is not None:
                match.active_mods = mods
                self._broadcast_match_update(match)
        elif packet_type == 53:
            if match is not None:
                match.loading_people -= 1
                if match.loading_people < 1:
                    for conn in self._playing_conns(match):
                        packets.write_match_all_players_loaded(conn)
        elif packet_type == 56:
            self.set_slot_status_by_id(player.stats.user_id, match, _SLOT_NOT_READY)
        elif packet_type == 61:
            if match is not None:
                match.skipping_needed_to_skip -= 1
                if match.skipping_needed_to_skip < 1:
                    for conn in self._playing_conns(match):
                        packets.write_match_skip(conn)
        else:
            log_warning("Received unhandled packet %d", packet_type)
        return True

    def _create_match(self, player, data):
        match = Match()
        match.update_from_bytes(data)
        match.slot_status = [_SLOT_NOT_READY] + [_SLOT_OPEN] * (SLOT_COUNT - 1)
        match.slot_id = [player.stats.user_id] + [-1] * (SLOT_COUNT - 1)
        log_info("%s created an match with id %d", player.username, match.match_id)
        packets.write_match_join_success(player.conn, match)
        player.current_match = match
        self.add_match(match)

    def _ready(self, player, match):
        if match is None:
            return
        slot = find_user_slot_in_match(player.stats.user_id, match)
        if slot != -1:
            match.slot_status[slot] = _SLOT_READY
        self._broadcast_match_update(match)

    def _start_match(self, match):
        if match is None:
            return
        match.in_progress = True
        match.loading_people = count_players_in_match(match)
        match.skipping_needed_to_skip = count_players_in_match(match)
        for slot, user_id in enumerate(match.slot_id):
            if user_id != -1:
                match.slot_status[slot] = _SLOT_PLAYING
        for user_id in match.slot_id:
            if user_id != -1:
                conn = self._conn_of(user_id)
                packets.write_match_update(conn, match)
                packets.write_match_start(conn, match)

    def _score_update(self, player, match, data):
        frame = read_score_frame(data)
        frame.slot_id = find_user_slot_in_match(player.stats.user_id, match) & 0xFF
        if match is None:
            return
        encoded = frame.to_bytes()
        for conn in self._playing_conns(match):
            packets.write_match_score_update(conn, encoded)

    def _complete_match(self, match):
        if match is None:
            return
        for slot, user_id in enumerate(match.slot_id):
            if user_id != -1 and match.slot_status[slot] == _SLOT_PLAYING:
                conn = self._conn_of(user_id)
                match.slot_status[slot] = _SLOT_NOT_READY
                match.in_progress = False
                packets.write_match_update(conn, match)
                packets.write_match_complete(conn)

    def _playing_conns(self, match):
        return [
            self._conn_of(user_id)
            for user_id, status in zip(match.slot_id, match.slot_status)
            if user_id != -1 and status == _SLOT_PLAYING
        ]

    def _conn_of(self, user_id):
        target = self.get_player_by_id(user_id)
        return None if target is None else target.conn

    def _broadcast_match_update(self, match, exclude=None):
        for user_id in match.slot_id:
            if user_id != -1 and user_id != exclude:
                packets.write_match_update(self._conn_of(user_id), match)

    # Chat and presence

    def handle_msg(self, player, data):
        """Relay a chat message and any reply of the bot."""
        stream = io.BytesIO(data)
        try:
            read_osu_string(stream)
        except ProtocolError:
            pass
        sender = player.username
        try:
            message = read_osu_string(stream)
        except ProtocolError as exc:
            log_err("Failed to read msg: %s", exc)
            return
        try:
            target = read_osu_string(stream)
        except ProtocolError as exc:
            log_err("Failed to read target: %s", exc)
            return
        with self._lock:
            for other in list(self.players.values()):
                if other.username != player.username:
                    packets.write_message(other.conn, sender, message, target)
        reply = bancho_bot.handle_msg(self.database, sender, message, target)
        if reply and target == MAIN_CHANNEL:
            with self._lock:
                for other in list(self.players.values()):
                    for line in reply.split("\n"):
                        packets.write_message(other.conn, bancho_bot.BOT_NAME, line, MAIN_CHANNEL)
        log_info(sender + "->" + target + ": " + message)

    def handle_status(self, player, data):
        """Update a player's status and announce it to everyone."""
        stream = io.BytesIO(data)
        status_code, beatmap_update = 0, False
        try:
            (status_code,) = _read(stream, "<B")
        except ProtocolError as exc:
            log_err("Error occurred while reading Status from %s %s", player.username, exc)
        try:
            (beatmap_update,) = _read(stream, "<?")
        except ProtocolError as exc:
            log_err("Error occurred while reading BeatmapUpdate from %s %s", player.username, exc)
        player.status.status = status_code
        player.status.beatmap_update = beatmap_update
        if beatmap_update:
            try:
                status_text = read_osu_string(stream)
            except ProtocolError as exc:
                log_err("Failed to read statusText: %s", exc)
                return
            try:
                beatmap_md5 = read_osu_string(stream)
            except ProtocolError as exc:
                log_err("Failed to read beatmapMd5: %s", exc)
                return
            mods = 0
            try:
                (mods,) = _read(stream, "<H")
            except ProtocolError:
                log_err("Error occurred while reading mods from " + player.username)
            player.status.status_text = status_text
            player.status.beatmap_checksum = beatmap_md5
            player.status.current_mods = mods
        with self._lock:
            for other in list(self.players.values()):
                packets.write_user_stats(other.conn, player, 0)

    def add_player(self, player):
        """Register an online player under their name."""
        with self._lock:
            self.players[player.username] = player

    def remove_player(self, username, user_id):
        """Take a player offline and tell everyone else."""
        with self._lock:
            self.players.pop(username, None)
            log_info("Player disconnected: %s", username)
            for other in list(self.players.values()):
                packets.write_irc_quit(other.conn, username)
                packets.write_user_quit(other.conn, user_id)

    def get_player_by_id(self, user_id):
        """Return the online player with this id, or None."""
        with self._lock:
            for player in self.players.values():
                if player.stats.user_id == user_id:
                    return player
        return None

    # Matches

    def add_match(self, match):
        """Open a match and show it to everyone in the lobby."""
        with self._lock:
            self.matches[match.match_id] = match
            for other in list(self.players.values()):
                if other.is_in_lobby:
                    packets.write_match_update(other.conn, match)

    def remove_match(self, match_id):
        """Forget a match."""
        with self._lock:
            self.matches.pop(match_id, None)

    def find_match_by_id(self, match_id):
        """Return the open match with this id, or None."""
        with self._lock:
            return self.matches.get(match_id)

    def set_slot_status_by_id(self, user_id, match, new_status):
        """Change the user's slot status and send the match to its players."""
        if match is None:
            return
        slot = find_user_slot_in_match(user_id, match)
        if slot != -1:
            match.slot_status[slot] = new_status
        self._broadcast_match_update(match)

    def join_match(self, player, match):
        """Seat a player in the first free slot; return False if impossible."""
        if match is None:
            return False
        slot = find_slot_for_player(match)
        if slot == -1:
            packets.write_match_join_fail(player.conn)
            return False
        match.slot_id[slot] = player.stats.user_id
        match.slot_status[slot] = _SLOT_NOT_READY
        self._broadcast_match_update(match, exclude=player.stats.user_id)
        packets.write_match_join_success(player.conn, match)
        return True

    def part_match(self, player, match):
        """Remove a player from a match, disbanding it when it becomes empty."""
        if match is None:
            return
        slot = find_user_slot_in_match(player.stats.user_id, match)
        if slot != -1:
            match.slot_id[slot] = -1
            match.slot_status[slot] = _SLOT_OPEN
        self._broadcast_match_update(match, exclude=player.stats.user_id)
        if count_players_in_match(match) == 0:
            self.remove_match(match.match_id)
            with self._lock:
                for other in list(self.players.values()):
                    if other.is_in_lobby:
                        packets.write_disband_match(other.conn, match.match_id)