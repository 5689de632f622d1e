[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "retsu"
version = "0.1.0"
description = "A private osu! server: a Bancho game server with multiplayer matches and a Flask web frontend for accounts, scores and leaderboards."
requires-python = ">=3.10"
dependencies = [
    "flask",
    "pymysql",
]
keywords = ["osu", "bancho", "game-server", "private-server", "leaderboard", "multiplayer"]
classifiers = [
    "Development Status :: 3 - Alpha",
    "Environment :: Console",
    "Environment :: Web Environment",
    "Framework :: Flask",
    "Intended Audience :: System Administrators",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: Games/Entertainment",
    "Topic :: Internet :: WWW/HTTP :: HTTP Servers",
]

[project.optional-dependencies]
test = [
    "pytest",
]

[project.scripts]
retsu = "retsu.main:main"

[tool.hatch.build.targets.wheel]
packages = ["retsu"]

[tool.pytest.ini_options]
addopts = "-ra"
