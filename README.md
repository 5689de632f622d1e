# retsu

retsu is a small private server for the osu! game client. It has two parts
that run side by side:

- **Bancho**, the game server (`retsu.bancho.BanchoServer`). By default it
  listens for game clients on TCP port 13381. It handles logins, chat, user
  presence and statistics, and multiplayer matches of up to eight slots
  (create, join, leave, ready, unready, beatmap and mod changes, start, skip,
  live score updates and completion). A built-in `BanchoBot` user answers chat
  commands.
- **The frontend**, a Flask web application (`retsu.app`), by default on port
  8080. It serves the website pages and a small JSON/text API for accounts and
  the leaderboard, and the endpoints the game client uses to submit scores and
  replays, fetch beatmap leaderboards, download replays and fetch avatars.

Both parts keep their data in a MySQL database through `retsu.db.Database`,
using the tables `users`, `scores`, `beatmaps`, `restricts` and `admins`.

## Installing

```
pip install .
```

## Running

```
retsu
```

This connects to MySQL, starts the Bancho server in a background thread and
runs the web frontend in the foreground. Options:

| Option | Default | Meaning |
| --- | --- | --- |
| `--db-host` | `127.0.0.1` | MySQL host |
| `--db-user` | `test` | MySQL user |
| `--db-name` | `osu!` | MySQL database |
| `--bancho-host` | `0.0.0.0` | address the game server binds to |
| `--bancho-port` | `13381` | port of the game server |
| `--web-host` | `0.0.0.0` | address the frontend binds to |
| `--web-port` | `8080` | port of the frontend |
| `--root` | current directory | directory that holds `frontend/` |

The database password is read from the `RETSU_DB_PASSWORD` environment
variable. The session cookie (`usersession`) is signed with the key in
`RETSU_SECRET_KEY`; without it a random key is made at start-up, so logins do
not survive a restart.

Under the root directory the frontend uses:

- `frontend/src/web/` for the HTML pages (`index.html`, `leaderboards.html`,
  `register.html`, `login.html`, `profile.html`, `editprofile.html`) and the
  `css/`, `js/` and `img/` folders;
- `frontend/Avatars/<userid>.png` for avatars, with `frontend/avatar.png` as
  the default;
- `frontend/replays/<scoreid>.osr` for replays.

The avatar and replay folders are created when the first file is stored.

## Using it from Python

```python
import threading

from retsu.app import run_frontend
from retsu.bancho import BanchoServer
from retsu.db import connect
from retsu.geo import get_country_from_ip

password = "password"
database = connect(host="127.0.0.1", user="retsu", password=password, database="osu!")

server = BanchoServer(database, get_country_from_ip)
threading.Thread(target=server.serve, args=("0.0.0.0", 13381), daemon=True).start()

run_frontend(database, "0.0.0.0", 8080, ".")
```

`retsu.app.create_app(database, root)` returns the Flask application without
starting it, so it can run under any WSGI server.

`retsu.db.Database(connection, paramstyle)` wraps any DB-API connection whose
parameter style is `qmark`, `format` or `pyformat`; `connect()` builds one over
PyMySQL.

When a client logs in, `get_country_from_ip` looks up the client's country
with an external IP geolocation service over HTTP. Loopback addresses and
addresses starting with `192.` are reported as `behind you` without a lookup.
Any other lookup function taking an IP string can be passed to `BanchoServer`.

The wire format lives in `retsu.protocol` (packet framing, ULEB128 and string
encoding), `retsu.structs` (`Match`, `Player`, `ScoreFrame`, `Status`,
`UserStats`) and `retsu.packets` (one `write_*` function per server packet).

## Chat commands

BanchoBot answers these commands; its replies are sent to everyone in `#osu`
when the command was written there.

| Command | Who | What it does |
| --- | --- | --- |
| `!ping` | anyone | replies `Pong!` |
| `!whoami` | anyone | shows your user id, admin and restriction state, and join date |
| `!restrict <username> <reason>` | admins | restricts a user so they can no longer submit scores |
| `!unrestrict <username>` | admins | lifts a restriction |
| `!updatebeatmapstatus <beatmapmd5> <status>` | admins | sets a beatmap's status |

Beatmap statuses are `-1` not submitted, `0` pending, `1` update available,
`2` ranked and `3` approved. Only ranked and approved maps accept scores and
show leaderboards.

## Scores

`/web/osu-submit.php` accepts a score only when the user name and password
hash match, the user is not restricted, the play was passed and the map is
ranked or approved. The replay file is stored, the score saved, and the
user's ranked score, play count, total score, accuracy and rank are
recalculated.

## Web API

| Path | Purpose |
| --- | --- |
| `/api/v1/register?u=…&p=…` | create an account and log in |
| `/api/v1/login?u=…&p=…` | log in |
| `/logout` | end the session and redirect to `/` |
| `/api/v1/isloggedin` | `Yes` or `No` |
| `/api/v1/GetUser` | the session user as JSON, or `No` |
| `/api/v1/findplayer/<user>` | a player's profile as JSON |
| `/api/v1/gettop` | the top 100 players by ranked score as JSON |
| `/api/v1/userpanel/UpdatePassword` | change password (form fields `oldpass`, `newpass`) |
| `/api/v1/userpanel/UpdateUsername` | change username (form field `newusername`) |
| `/api/v1/userpanel/SetAvatar` | upload an avatar (multipart field `avatar`) |

## What it does not do

- It does not create the database tables; they must exist before starting.
- Passwords are stored as plain MD5 hashes without salt.
- Compressed client packets are not supported; the compression flag is ignored.
- Only the `#osu` channel exists; there are no other channels or private
  channel management.

## Tests

```
pip install .[test]
pytest
```