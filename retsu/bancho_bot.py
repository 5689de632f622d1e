"""The built-in chat bot and its administrative commands."""

from .structs import Player, Status, UserStats

BOT_NAME = "BanchoBot"


def generate_profile():
    """Return the bot's presence; it has no connection of its own."""
    stats = UserStats(
        user_id=1,
        ranked_score=1337,
        accuracy=0.1337,
        play_count=1337,
        total_score=1337,
        rank=0,
    )
    return Player(
        username=BOT_NAME,
        status=Status(),
        stats=stats,
        conn=None,
        is_in_lobby=False,
        timezone=24,
        country="Satelite",
    )


def _whoami(database, sender):
    user_id = database.get_user_id_by_username(sender)
    is_admin = str(bool(database.is_admin(user_id))).lower()
    is_restricted = str(bool(database.is_restricted(user_id))).lower()
    return (
        f"You are {sender}\nUserId: {user_id}\n"
        f"IsAdmin: {is_admin}\n"
        f"IsRestricted: {is_restricted}\n"
        f"Join Date: {database.get_join_date(sender)}"
    )


def _unrestrict(database, msg):
    args = msg.split(" ")
    if len(args) < 2:
        return "Missing arguments! correct command: !restrict <username>"
    username = args[1]
    if not database.does_exist(username):
        return "User does not exist!"
    if not database.is_restricted(database.get_user_id_by_username(username)):
        return "User is not restricted!"
    database.unrestrict_user(username)
    return "Succesfully removed restriction from" + username


def _restrict(database, sender, msg):
    args = msg.split(" ")
    if len(args) < 3:
        return "Missing arguments! correct command: !restrict <username> <reason(without spaces)>"
    username, reason = args[1], args[2]
    if not database.does_exist(username):
        return "User does not exist!"
    if database.is_restricted(database.get_user_id_by_username(username)):
        return "User is already restricted!"
    database.restrict_user(username, sender, reason)
    return "Succesfully restricted " + username


def _update_beatmap_status(database, msg):
    args = msg.split(" ")
    if len(args) < 3:
        return "Missing arguments! correct command: !updatebeatmapstatus <beatmapmd5> <newstatus>"
    return database.set_status(args[1], args[2])


def handle_msg(database, sender, msg, target):
    """Return the bot's reply to a chat message, or "" when it has none."""
    if msg.startswith("!ping"):
        return "Pong!"
    if msg.startswith("!whoami"):
        return _whoami(database, sender)
    admin_commands = (
        ("!unrestrict", lambda: _unrestrict(database, msg)),
        ("!restrict", lambda: _restrict(database, sender, msg)),
        ("!updatebeatmapstatus", lambda: _update_beatmap_status(database, msg)),
    )
    for prefix, command in admin_commands:
        if msg.startswith(prefix):
            if not database.is_admin(database.get_user_id_by_username(sender)):
                return "You are not an admin!"
            return command()
    return ""