"""A private osu! server: Bancho game server, Flask web frontend and MySQL storage layer."""

__version__ = "0.1.0"