"""GitHub command plugin."""

from bunnylol.plugins.helpers import get_args, split, url_encode_path

GITHUB_BASE = "https://github.com"


def info():
    return {
        "bindings": ["gh", "github"],
        "description": "Navigate to GitHub repositories",
        "example": "gh facebook/react",
    }


def process(full_args):
    args = get_args(full_args, split(full_args, " ")[0])
    if not args:
        return GITHUB_BASE
    return f"{GITHUB_BASE}/{url_encode_path(args)}"
