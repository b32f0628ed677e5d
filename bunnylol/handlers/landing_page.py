"""Bindings page served at ``/`` and for unknown routes."""

import html
import threading
from typing import Iterable, Optional

from bunnylol.commands.command_info import CommandInfo

PAGE_TEMPLATE = """<!DOCTYPE html>
<html lang="en">
<head>
<meta charset="UTF-8">
<meta name="viewport" content="width=device-width, initial-scale=1.0">
<title>bunnylol</title>
<link rel="icon" href="data:image/svg+xml,<svg xmlns=%22http://www.w3.org/2000/svg%22 viewBox=%220 0 100 100%22><text y=%22.9em%22 font-size=%2290%22>&#x1F430;</text></svg>">
<style>
*{{margin:0;padding:0;box-sizing:border-box}}
body{{font-family:-apple-system,BlinkMacSystemFont,'Helvetica Neue',sans-serif;color:#333;max-width:900px;margin:0 auto;padding:48px 24px}}
header{{text-align:center;margin-bottom:48px}}
header .logo{{font-size:64px;line-height:80px;margin-bottom:12px}}
header h1{{font-size:1.4em;font-weight:600;margin-bottom:4px}}
header p{{color:#999;font-size:.8em;font-family:'SF Mono',Menlo,Consolas,monospace}}
table{{width:100%;border-collapse:collapse;font-size:.88em}}
th{{text-align:left;padding:6px 12px;border-bottom:2px solid #e0e0e0;font-weight:600;color:#666;font-size:.75em;text-transform:uppercase;letter-spacing:.05em}}
td{{padding:7px 12px;border-bottom:1px solid #f0f0f0;vertical-align:top}}
tr:hover{{background:#fafafa}}
.cmd{{font-family:'SF Mono',Menlo,Consolas,monospace;font-weight:600;white-space:nowrap}}
.example{{font-family:'SF Mono',Menlo,Consolas,monospace;color:#999;font-size:.9em}}
</style>
</head>
<body>
<header>
<div class="logo">&#x1F430;</div>
<h1>bunnylol</h1>
<p>{display_url}</p>
</header>
<table>
<thead><tr><th>Command</th><th>Description</th><th>Example</th></tr></thead>
<tbody>
{rows}</tbody>
</table>
</body>
</html>"""

ROW_TEMPLATE = (
    '<tr><td class="cmd">{name}</td><td>{description}</td>'
    '<td class="example">{example}</td></tr>\n'
)


def render_landing_page(display_url: str, commands: Iterable[CommandInfo]) -> str:
    """Render the bindings table; rows sorted by lowercased primary binding."""
    rows = "".join(
        ROW_TEMPLATE.format(
            name=html.escape(command.primary),
            description=html.escape(command.description),
            example=html.escape(command.example),
        )
        for command in sorted(commands, key=CommandInfo.sort_key)
    )
    return PAGE_TEMPLATE.format(display_url=html.escape(display_url), rows=rows)


class LandingPage:
    """Renders the page on first use and serves the cached copy afterwards.

    Plugins and configuration are fixed for the life of a server.
    """

    def __init__(self, display_url: str, commands: Iterable[CommandInfo]) -> None:
        self._display_url = display_url
        self._commands = list(commands)
        self._lock = threading.Lock()
        self._html: Optional[str] = None

    def html(self) -> str:
        with self._lock:
            if self._html is None:
                self._html = render_landing_page(self._display_url, self._commands)
            return self._html
