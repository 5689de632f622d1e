import json
from unittest.mock import MagicMock, patch

import pytest

from retsu.geo import get_country_from_ip


def _reply(body):
    response = MagicMock()
    response.__enter__.return_value.read.return_value = body
    return response


@pytest.mark.parametrize("ip", ["127.0.0.1", "::1", "192.168.1.20"])
def test_local_addresses(ip):
    with patch("urllib.request.urlopen") as urlopen:
        assert get_country_from_ip(ip) == "behind you"
        assert urlopen.call_count == 0


def test_remote_lookup_returns_country():
    body = json.dumps({"country": "Japan", "status": "success"}).encode()
    with patch("urllib.request.urlopen", return_value=_reply(body)) as urlopen:
        assert get_country_from_ip("8.8.8.8") == "Japan"
    assert "8.8.8.8" in urlopen.call_args[0][0]


def test_missing_country_is_empty():
    with patch("urllib.request.urlopen", return_value=_reply(b"{}")):
        assert get_country_from_ip("10.0.0.1") == ""


def test_invalid_json_raises():
    with patch("urllib.request.urlopen", return_value=_reply(b"not json")):
        with pytest.raises(ValueError):
            get_country_from_ip("10.0.0.1")


def test_network_error_propagates():
    with patch("urllib.request.urlopen", side_effect=OSError("down")):
        with pytest.raises(OSError):
            get_country_from_ip("10.0.0.1")