"""Field casts: converts raw captured text into typed values."""

import math
import re
from enum import Enum
from urllib.parse import urlsplit

_INTEGER_RE = re.compile(r"[+-]?[0-9]+")
_FLOAT_RE = re.compile(r"[+-]?([0-9]+(\.[0-9]*)?|\.[0-9]+)([eE][+-]?[0-9]+)?")


def cast_string(value: str) -> str:
    return value


def cast_integer(value: str) -> int:
    """Parse a base-10 integer. Anything else yields 0."""
    if not _INTEGER_RE.fullmatch(value):
        return 0
    return int(value)


def cast_float(value: str) -> float:
    """Parse a finite decimal float. Anything else yields 0.0."""
    if not _FLOAT_RE.fullmatch(value):
        return 0.0
    result = float(value)
    # 1e999 overflows to inf, which JSON cannot carry
    return result if math.isfinite(result) else 0.0


def cast_host(value: str) -> dict:
    """Split a dotted hostname into subdomain, registered domain and full name.

    ``www.google.com`` -> ``{"subdomain": "www", "domain": "google.com", ...}``.
    Names with fewer than three labels have an empty subdomain.
    """
    parts = value.split(".")
    return {
        "subdomain": ".".join(parts[:-2]),
        "domain": ".".join(parts[-2:]),
        "full": value,
    }


def cast_url(value: str) -> dict | None:
    """Break a URL into its components. Malformed URLs yield None."""
    try:
        parts = urlsplit(value)
        host = parts.netloc.rpartition("@")[2]
        user = parts.username
        # port is only validated on access
        parts.port
    except ValueError:
        return None

    opaque = ""
    path = parts.path
    if parts.scheme and not parts.netloc and path and not path.startswith("/"):
        opaque, path = path, ""

    return {
        "Scheme": parts.scheme,
        "Opaque": opaque,
        "User": user,
        "Host": host,
        "Path": path,
        "RawQuery": parts.query,
        "Fragment": parts.fragment,
    }


class Cast(Enum):
    STRING = "string"
    INTEGER = "integer"
    FLOAT = "float"
    HOST = "host"
    URL = "url"

    @classmethod
    def from_name(cls, name: str) -> "Cast":
        """Resolve a configured cast name. Raises ValueError for unknown names."""
        try:
            return cls(name)
        except ValueError:
            known = ", ".join(c.value for c in cls)
            raise ValueError(f"unknown cast {name!r} (expected one of: {known})") from None

    def apply(self, value: str):
        return _CAST_FUNCS[self](value)


_CAST_FUNCS = {
    Cast.STRING: cast_string,
    Cast.INTEGER: cast_integer,
    Cast.FLOAT: cast_float,
    Cast.HOST: cast_host,
    Cast.URL: cast_url,
}
