"""Expansion of ``%(name)s`` and ``%(name)d`` expressions."""

from __future__ import annotations

import os
import re
import socket

_LETTER = re.compile(r"[A-Za-z]")
_INTEGER = re.compile(r"[+-]?\d+")


class StringExpression:
    """A set of variables used to expand ``%(name)<fmt>`` placeholders.

    Every environment variable is available as ``ENV_<name>``; the
    positional arguments are key/value pairs added on top of them.
    """

    def __init__(self, *args):
        self.env: dict[str, str] = {f"ENV_{k}": v for k, v in os.environ.items()}
        for key, value in zip(args[0::2], args[1::2]):
            self.env[key] = value
        try:
            self.env["host_node_name"] = socket.gethostname()
        except OSError:
            pass

    def add(self, key, value):
        """Add or replace a variable; returns self for chaining."""
        self.env[key] = value
        return self

    def eval(self, s):
        """Expand every placeholder in ``s``; raise ValueError on failure."""
        while True:
            start = s.find("%(")
            if start == -1:
                return s
            end = s.find(")", start + 1)
            if end == -1:
                end = len(s)
            match = _LETTER.search(s, end + 1) if end + 1 <= len(s) else None
            if match is None:
                raise ValueError("invalid string expression format")
            typ = match.start()
            name = s[start + 2:end]
            if name not in self.env:
                raise ValueError(f"fail to find the environment variable {name}")
            value = self.env[name]
            kind = s[typ]
            if kind == "d":
                if not _INTEGER.fullmatch(value):
                    raise ValueError(f"can't convert {value} to integer")
                try:
                    text = ("%" + s[end + 1:typ + 1]) % int(value)
                except (TypeError, ValueError) as exc:
                    raise ValueError(f"invalid integer format in {s!r}") from exc
            elif kind == "s":
                text = value
            else:
                raise ValueError(f"not implement type:{kind}")
            s = s[:start] + text + s[typ + 1:]