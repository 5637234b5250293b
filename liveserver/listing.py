"""Directory index pages."""

import html
import os
from typing import Iterable, List, NamedTuple
from urllib.parse import quote

STYLE = """
<style>
  :root{color-scheme:light dark}
  body{font:14px/1.5 system-ui,Segoe UI,Roboto,Helvetica,Arial,sans-serif;padding:24px;max-width:900px;margin:auto}
  h1{font-size:20px;margin:0 0 16px}
  table{width:100%;border-collapse:collapse}
  td{padding:6px 8px;border-bottom:1px solid rgba(127,127,127,.2)}
  a{text-decoration:none} a:hover{text-decoration:underline}
</style>"""


class Entry(NamedTuple):
    name: str
    is_dir: bool
    parent: bool = False


def scan_directory(path: str, show_hidden: bool = False) -> List[Entry]:
    """Non-recursive scan of ``path``; dotfiles are skipped unless ``show_hidden``."""
    entries = []
    with os.scandir(path) as it:
        for item in it:
            if not show_hidden and item.name.startswith("."):
                continue
            try:
                is_dir = item.is_dir()
            except OSError:
                is_dir = False
            entries.append(Entry(item.name, is_dir))
    return entries


def sort_entries(entries: Iterable[Entry]) -> List[Entry]:
    return sorted(entries, key=lambda e: (not e.parent, not e.is_dir, e.name.lower(), e.name))


def parent_href(request_path: str) -> str:
    trimmed = request_path.rstrip("/")
    parent = trimmed.rsplit("/", 1)[0] if "/" in trimmed else ""
    return quote(parent + "/")


def display_name(name: str) -> str:
    """``name`` with undecodable filename bytes shown as U+FFFD."""
    return os.fsencode(name).decode("utf-8", "replace")


def entry_href(request_path: str, entry: Entry) -> str:
    """Link for ``entry``; ``request_path`` is the decoded path of the listed directory."""
    if entry.parent:
        return parent_href(request_path)
    base = request_path if request_path.endswith("/") else request_path + "/"
    return quote(base) + quote(os.fsencode(entry.name), safe="") + ("/" if entry.is_dir else "")


def render_listing(entries: Iterable[Entry], request_path: str, at_root: bool) -> str:
    """Render the index page for one directory.

    A ``..`` row is added unless the directory is the serve root.
    """
    rows = list(entries)
    if not at_root:
        rows.append(Entry("..", True, parent=True))

    lines = []
    for entry in sort_entries(rows):
        label = display_name(entry.name) + ("/" if entry.is_dir and not entry.parent else "")
        lines.append(
            f'<tr><td><a href="{html.escape(entry_href(request_path, entry))}">'
            f"{html.escape(label)}</a></td></tr>"
        )

    title = html.escape(f"Index of {request_path}")
    return (
        "<!doctype html>\n"
        f'<html><head><meta charset="utf-8"><title>{title}</title>{STYLE}</head>\n'
        f"<body><h1>{title}</h1><table>\n"
        + "\n".join(lines)
        + "\n</table></body></html>\n"
    )
