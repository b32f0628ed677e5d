"""Helper functions available to command plugins.

Plugins import what they need::

    from bunnylol.plugins.helpers import get_args, url_encode
"""

import urllib.parse

# Characters left untouched when encoding a URL path: everything except
# controls, space, and  " # < > ? ` { }  plus non-ASCII.
_PATH_SAFE = "!$%&'()*+,-./:;=@[\\]^_|~"

# quote() never escapes these; url_encode escapes every non-alphanumeric.
_UNRESERVED_ESCAPES = str.maketrans({"-": "%2D", ".": "%2E", "_": "%5F", "~": "%7E"})


def get_args(full_args: str, binding: str) -> str:
    """Drop the binding from the start of the query, then leading whitespace."""
    if full_args.startswith(binding):
        full_args = full_args[len(binding) :]
    return full_args.lstrip()


def url_encode(value: str) -> str:
    """Percent-encode everything except ASCII letters and digits."""
    return urllib.parse.quote(value, safe="").translate(_UNRESERVED_ESCAPES)


def url_encode_path(value: str) -> str:
    """Percent-encode a path, keeping slashes and other path punctuation."""
    return urllib.parse.quote(value, safe=_PATH_SAFE)


def trim(value: str) -> str:
    return value.strip()


def split(value: str, delimiter: str) -> list[str]:
    return value.split(delimiter)


def starts_with(value: str, prefix: str) -> bool:
    return value.startswith(prefix)


def ends_with(value: str, suffix: str) -> bool:
    return value.endswith(suffix)


def contains(value: str, needle: str) -> bool:
    return needle in value


def upper(value: str) -> str:
    return value.upper()


def lower(value: str) -> str:
    return value.lower()
