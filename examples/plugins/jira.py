"""Jira command plugin.

Point JIRA_BASE at your own instance.
"""

import re

from bunnylol.plugins.helpers import get_args, split, trim, url_encode

JIRA_BASE = "https://mycompany.atlassian.net"
ISSUE_KEY = re.compile(r"^[A-Z]+-\d+$")


def info():
    return {
        "bindings": ["jira", "j"],
        "description": "Navigate to Jira issues or search",
        "example": "jira PROJ-123",
    }


def process(full_args):
    args = trim(get_args(full_args, split(full_args, " ")[0]))
    if not args:
        return f"{JIRA_BASE}/jira/projects"
    if ISSUE_KEY.match(args):
        return f"{JIRA_BASE}/browse/{args}"
    return f"{JIRA_BASE}/issues/?jql=text~{url_encode(args)}"
