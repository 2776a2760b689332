"""Checks that decide whether a started program is ready."""

from __future__ import annotations

import queue
import socket
import subprocess
import threading
import time
import urllib.error
import urllib.request
from abc import ABC, abstractmethod


class ContentChecker(ABC):
    """Something that can tell whether a program has become ready."""

    @abstractmethod
    def check(self):
        """Return True if the program is ready."""


class BaseChecker(ContentChecker):
    """Ready once every expected text has been written, before the timeout."""

    def __init__(self, includes, timeout):
        self.includes = list(includes)
        self.timeout_time = time.monotonic() + timeout
        self.data = ""
        self._notify: queue.Queue[str] = queue.Queue()

    def write(self, data):
        """Feed received output; returns the number of bytes taken."""
        text = data.decode("utf-8", errors="replace") if isinstance(data, (bytes, bytearray)) else data
        self._notify.put(text)
        return len(data)

    def _is_ready(self):
        return all(include in self.data for include in self.includes)

    def check(self):
        while True:
            remaining = self.timeout_time - time.monotonic()
            if remaining < 0:
                return False
            try:
                chunk = self._notify.get(timeout=remaining)
            except queue.Empty:
                return False
            self.data += chunk
            if self._is_ready():
                return True


class ScriptChecker(ContentChecker):
    """Ready when the given command exits successfully."""

    def __init__(self, args):
        self.args = list(args)

    def check(self):
        try:
            return subprocess.run(self.args).returncode == 0
        except (OSError, ValueError):
            return False


class TcpChecker(ContentChecker):
    """Ready when a TCP server sends every expected text before the timeout."""

    def __init__(self, host, port, includes, timeout):
        self.host = host
        self.port = port
        self._base = BaseChecker(includes, timeout)
        self._conn: socket.socket | None = None
        threading.Thread(target=self._read, daemon=True).start()

    def _connect(self):
        while True:
            remaining = self._base.timeout_time - time.monotonic()
            if remaining <= 0:
                return None
            try:
                return socket.create_connection((self.host, self.port), timeout=remaining)
            except OSError:
                time.sleep(min(0.05, max(remaining, 0)))

    def _read(self):
        conn = self._connect()
        if conn is None:
            return
        conn.settimeout(None)
        self._conn = conn
        try:
            while True:
                chunk = conn.recv(1024)
                if not chunk:
                    break
                self._base.write(chunk)
        except OSError:
            pass

    def check(self):
        result = self._base.check()
        if self._conn is not None:
            try:
                self._conn.close()
            except OSError:
                pass
        return result


class HttpChecker(ContentChecker):
    """Ready when a GET of the URL answers with a 2xx status before the timeout."""

    def __init__(self, url, timeout):
        self.url = url
        self.timeout_time = time.monotonic() + timeout

    def check(self):
        while True:
            remaining = self.timeout_time - time.monotonic()
            if remaining <= 0:
                return False
            try:
                with urllib.request.urlopen(self.url, timeout=remaining) as resp:
                    status = resp.status
            except urllib.error.HTTPError as exc:
                status = exc.code
            except (urllib.error.URLError, OSError, ValueError):
                time.sleep(min(0.05, max(remaining, 0)))
                continue
            return 200 <= status < 300