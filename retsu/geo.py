"""Country lookup for client IP addresses."""

import json
import urllib.request

_LOCAL_ADDRESSES = {"127.0.0.1", "::1"}
_LOCAL_COUNTRY = "behind you"
_LOOKUP_URL = "http://ip-api.com/json/{}"
_TIMEOUT = 10.0


def get_country_from_ip(ip):
    """Return the country name for an IP address.

    Loopback and 192.* addresses are reported as local without a lookup.
    Network failures raise OSError, malformed replies raise ValueError.
    """
    if ip in _LOCAL_ADDRESSES or ip.split(".")[0] == "192":
        return _LOCAL_COUNTRY
    with urllib.request.urlopen(_LOOKUP_URL.format(ip), timeout=_TIMEOUT) as response:
        body = response.read()
    location = json.loads(body)
    if not isinstance(location, dict):
        raise ValueError("unexpected geolocation reply")
    country = location.get("country", "")
    if not isinstance(country, str):
        raise ValueError("country is not a string")
    return country