"""The web frontend: pages, client web endpoints and the API."""

import os
import secrets
from pathlib import Path

from flask import Flask, Response, abort, current_app, request, send_file, send_from_directory

from .api import DATABASE_KEY, ROOT_KEY, create_blueprint
from .config import SESSION_NAME
from .logs import log_err, log_info
from .scores import formatted_to_score

DEFAULT_HOST = "0.0.0.0"
DEFAULT_PORT = 8080

_METHODS = ["GET", "POST"]
_OCTET_STREAM = "application/octet-stream"
_PAGES = (
    ("/leaderboard", "leaderboards.html"),
    ("/", "index.html"),
    ("/register", "register.html"),
    ("/login", "login.html"),
    ("/profile/<user>", "profile.html"),
    ("/userpanel/edit", "editprofile.html"),
)
_STATIC_DIRS = ("css", "js", "img")


def _database():
    return current_app.config[DATABASE_KEY]


def _root():
    return Path(current_app.config[ROOT_KEY])


def _web_dir():
    return _root() / "frontend" / "src" / "web"


def _inside(base, name):
    """Return base/name if it stays inside base, else None."""
    base = base.resolve()
    candidate = (base / name).resolve()
    return candidate if candidate.is_relative_to(base) else None


def _plain(body="", status=200):
    return Response(body, status=status, mimetype="text/plain")


def handle_score():
    """Accept a score submission with its replay."""
    try:
        score = formatted_to_score(request.args.get("score", ""))
    except ValueError as exc:
        log_err("Malformed score submission: %s", exc)
        return _plain("", 400)
    password = request.args.get("pass", "")
    log_info("%s has submitted score", score.username)
    database = _database()
    accepted = (
        database.is_correct_cred(score.username, password)
        and not database.is_restricted(database.get_user_id_by_username(score.username))
        and score.passed == "True"
        and database.is_ranked(score.file_checksum)
    )
    if not accepted:
        return _plain()
    score_id = database.get_new_score_id()
    upload = request.files.get("score")
    if upload is None:
        log_err("Unable to get file from form")
        return _plain()
    target = _root() / "frontend" / "replays" / f"{score_id}.osr"
    try:
        target.parent.mkdir(parents=True, exist_ok=True)
        upload.save(str(target))
    except OSError:
        log_err("Failed to save replay")
        return _plain()
    database.insert_score(score, score_id)
    database.update_ranked_score(score.username)
    database.update_playcount(score.username)
    database.update_total_score(score.username)
    database.update_accuracy(score.username)
    database.update_rank(score.username)
    return _plain()


def handle_replay():
    """Send a stored replay by score id."""
    path = _inside(_root() / "frontend" / "replays", request.args.get("c", "") + ".osr")
    if path is None or not path.is_file():
        abort(404)
    return send_file(path, mimetype=_OCTET_STREAM)


def handle_scores():
    """Send a map's status followed by its leaderboard when ranked."""
    checksum = request.args.get("c", "")
    database = _database()
    body = database.get_map_status(checksum)
    if database.is_ranked(checksum):
        body += database.get_scores(checksum)
    return _plain(body)


def handle_avatar():
    """Send a user's avatar, or the default one."""
    path = _inside(_root() / "frontend" / "Avatars", request.args.get("avatar", "") + ".png")
    if path is None or not path.is_file():
        path = _root() / "frontend" / "avatar.png"
        if not path.is_file():
            abort(404)
    return send_file(path, mimetype=_OCTET_STREAM)


def _page_view(filename):
    def view(**_route_values):
        return send_from_directory(_web_dir(), filename)

    return view


def _static_view(folder):
    def view(filename):
        return send_from_directory(_web_dir() / folder, filename)

    return view


def create_app(database, root=None):
    """Build the frontend application over a database and a data root."""
    root = Path(root) if root is not None else Path.cwd()
    app = Flask(__name__, static_folder=None)
    app.config[DATABASE_KEY] = database
    app.config[ROOT_KEY] = str(root)
    app.config["SESSION_COOKIE_NAME"] = SESSION_NAME
    app.secret_key = os.environ.get("RETSU_SECRET_KEY") or secrets.token_hex(32)
    app.register_blueprint(create_blueprint())
    for rule, view in (
        ("/web/osu-submit.php", handle_score),
        ("/web/osu-getreplay.php", handle_replay),
        ("/web/osu-getscores3.php", handle_scores),
        ("/forum/download.php", handle_avatar),
    ):
        app.add_url_rule(rule, view_func=view, methods=_METHODS)
    for rule, filename in _PAGES:
        endpoint = "page_" + filename.removesuffix(".html")
        app.add_url_rule(rule, endpoint=endpoint, view_func=_page_view(filename), methods=_METHODS)
    for folder in _STATIC_DIRS:
        app.add_url_rule(
            f"/{folder}/<path:filename>",
            endpoint=f"static_{folder}",
            view_func=_static_view(folder),
            methods=_METHODS,
        )
    return app


def run_frontend(database, host=DEFAULT_HOST, port=DEFAULT_PORT, root=None):
    """Serve the frontend until interrupted."""
    log_info("Starting frontend")
    create_app(database, root).run(host=host, port=port)