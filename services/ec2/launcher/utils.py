from __future__ import annotations

import subprocess

# cmd.exe treats these specially even where CommandLineToArgvW would not quote
_CMD_METACHARS = frozenset('\n\v"&|<>^()')


def ensure_ends_with(value: str, suffix: str) -> str:
    return value if value.endswith(suffix) else value + suffix


def quote_argument(arg: str) -> str:
    """
    Quote a single argument for a Windows command line.

    ``subprocess.list2cmdline`` applies the CommandLineToArgvW rules; arguments
    holding cmd metacharacters are wrapped in quotes as well.

    Examples:
        C:\\Temp\\ -> C:\\Temp\\
        C:\\My Dir\\ -> "C:\\My Dir\\\\"
        a&b -> "a&b"
    """
    body = subprocess.list2cmdline([arg])
    if body.startswith('"') or not _CMD_METACHARS.intersection(arg):
        return body
    trailing = len(body) - len(body.rstrip("\\"))
    return '"' + body + "\\" * trailing + '"'
