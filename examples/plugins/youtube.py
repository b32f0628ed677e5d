"""YouTube command plugin."""

from bunnylol.plugins.helpers import get_args, lower, split, trim, url_encode

SHORTCUTS = {
    "studio": "https://studio.youtube.com",
    "subs": "https://youtube.com/feed/subscriptions",
    "subscriptions": "https://youtube.com/feed/subscriptions",
}


def info():
    return {
        "bindings": ["yt", "youtube"],
        "description": "Navigate to YouTube or search videos",
        "example": "yt rust tutorial",
    }


def process(full_args):
    args = trim(get_args(full_args, split(full_args, " ")[0]))
    if not args:
        return "https://youtube.com"
    if lower(args) in SHORTCUTS:
        return SHORTCUTS[lower(args)]
    return f"https://youtube.com/results?search_query={url_encode(args)}"
