"""JSON and form endpoints of the web frontend."""

import json
from pathlib import Path

from flask import Blueprint, Response, current_app, redirect, request, session

from .config import hash_md5
from .db import UserExistsError
from .logs import log_err

DATABASE_KEY = "RETSU_DATABASE"
ROOT_KEY = "RETSU_ROOT"

_METHODS = ["GET", "POST"]


def _database():
    return current_app.config[DATABASE_KEY]


def _root():
    return Path(current_app.config[ROOT_KEY])


def _text(body, status=200):
    return Response(body, status=status, mimetype="text/plain")


def _error(message, status):
    return _text(message + "\n", status)


def _session_value(key):
    value = session.get(key)
    if isinstance(value, str) and value:
        return value
    return None


def _credentials():
    return _session_value("username"), _session_value("password")


def _destroy_session():
    session.clear()


def handle_lbs():
    """Return the top users as JSON; null when there are none."""
    try:
        top = _database().get_top_users()
    except Exception as exc:  # any storage failure ends up as a 500
        log_err(str(exc))
        return _error("Failed to get lb", 500)
    body = json.dumps(top or None, sort_keys=True, separators=(",", ":")) + "\n"
    return Response(body, mimetype="application/json")


def handle_get_user():
    """Describe the user held by the session."""
    username, password = _credentials()
    if username is None:
        return _text("No")
    if password is not None:
        reply = {"loggedIn": True, "username": username}
    else:
        reply = {"loggedIn": False, "username": ""}
    return _text(json.dumps(reply, indent=2))


def handle_is_logged():
    """Answer "Yes" if the session holds valid credentials, else "No"."""
    username, password = _credentials()
    if username is None or password is None:
        return _text("No")
    if _database().is_correct_cred(username, password):
        return _text("Yes")
    _destroy_session()
    return _text("No")


def handle_register():
    """Create an account from the u and p query values and log it in."""
    user = request.args.get("u", "")
    plain = request.args.get("p", "")
    if user and plain:
        try:
            _database().register_user(user, plain)
        except UserExistsError as exc:
            return _text(f"ERR\n{exc}")
        except Exception as exc:  # storage failures are reported to the client
            return _text(f"ERR\nfailed to insert user: {exc}")
        session["username"] = user
        session["password"] = hash_md5(plain)
    return _text("SUCCESS")


def handle_login():
    """Check the u and p query values and store them in the session."""
    user = request.args.get("u", "")
    plain = request.args.get("p", "")
    if user and plain:
        hashed = hash_md5(plain)
        if not _database().is_correct_cred(user, hashed):
            session.pop("username", None)
            session.pop("password", None)
            return _text("ERR\nWrong username or password")
        session["username"] = user
        session["password"] = hashed
    return _text("SUCCESS")


def handle_find_user(user):
    """Return a user's public profile as JSON."""
    if not user:
        return _text("No user provided")
    found = _database().get_user(user)
    profile = {
        "Username": found.username,
        "UserId": found.user_id,
        "RankedScore": found.ranked_score,
        "Accuracy": found.accuracy,
        "PlayCount": found.play_count,
        "TotalScore": found.total_score,
        "Rank": found.rank,
        "JoinDate": found.join_date,
        "LastOnline": found.last_online,
    }
    return _text(json.dumps(profile, indent=2))


def change_password():
    """Replace the session user's password and end the session."""
    oldpass = request.form.get("oldpass", "")
    newpass = request.form.get("newpass", "")
    if not oldpass or not newpass:
        return _error("No password provided", 400)
    username, password = _credentials()
    if username is None or password is None:
        return _text("")
    database = _database()
    if not database.is_correct_cred(username, password):
        _destroy_session()
        return _text("")
    if oldpass == password and database.set_password(username, password, hash_md5(newpass)):
        _destroy_session()
        return _text("Succesfully changed password")
    return _error("Failed to change password", 400)


def change_username():
    """Rename the session user and end the session."""
    new_username = request.form.get("newusername", "")
    if not new_username:
        return _error("No username provided", 400)
    username, password = _credentials()
    if username is None or password is None:
        return _text("")
    database = _database()
    if not database.is_correct_cred(username, password):
        _destroy_session()
        return _text("")
    if database.set_username(username, new_username):
        _destroy_session()
        return _text("Changed username!")
    return _error("Failed to change username, already taken?", 400)


def pfp_upload():
    """Store the uploaded avatar of the session user."""
    username, password = _credentials()
    if username is None or password is None:
        return _text("")
    database = _database()
    if not database.is_correct_cred(username, password):
        return _text("")
    upload = request.files.get("avatar")
    if upload is None:
        log_err("Unable to get avatar from form")
        return _text("")
    user_id = database.get_user_id_by_username(username)
    target = _root() / "frontend" / "Avatars" / f"{user_id}.png"
    try:
        target.parent.mkdir(parents=True, exist_ok=True)
        upload.save(str(target))
    except OSError:
        log_err("Failed to save avatar")
    return _text("")


def handle_logout():
    """End the session and go back to the front page."""
    _destroy_session()
    return redirect("/", code=303)


def create_blueprint():
    """Return a blueprint holding the API routes."""
    blueprint = Blueprint("api", __name__)
    routes = (
        ("/api/v1/gettop", handle_lbs),
        ("/api/v1/GetUser", handle_get_user),
        ("/api/v1/isloggedin", handle_is_logged),
        ("/api/v1/register", handle_register),
        ("/api/v1/login", handle_login),
        ("/api/v1/findplayer/<user>", handle_find_user),
        ("/api/v1/userpanel/UpdatePassword", change_password),
        ("/api/v1/userpanel/UpdateUsername", change_username),
        ("/api/v1/userpanel/SetAvatar", pfp_upload),
        ("/logout", handle_logout),
    )
    for rule, view in routes:
        blueprint.add_url_rule(rule, view_func=view, methods=_METHODS)
    return blueprint