"""A loopback TCP server on IPv4 and IPv6, used as a source of live sockets."""

from __future__ import annotations

import enum
import logging
import random
import socket
import threading
from typing import Protocol

log = logging.getLogger(__name__)

_BASE_PORT = 1200
_PORT_RANGE = 10000
_BACKLOG = 1024
_POLL_SECONDS = 0.1


class _Rng(Protocol):
    def randint(self, a: int, b: int) -> int: ...


class NetworkMode(enum.Enum):
    """What the network module is asked to set up."""

    SOCKET_SERVER = enum.auto()


def select_port_number(rng: _Rng | None = None) -> int:
    """Pick a random port at or above 1200."""
    rng = rng if rng is not None else random.SystemRandom()
    return _BASE_PORT + rng.randint(0, _PORT_RANGE)


def _connect(family: socket.AddressFamily, address: tuple) -> socket.socket:
    sock = socket.socket(family, socket.SOCK_STREAM)
    try:
        sock.connect(address)
    except OSError:
        sock.close()
        raise
    return sock


def connect_ipv4(port: int) -> socket.socket:
    """Connect to the server's IPv4 listener at 127.0.0.1:``port``."""
    return _connect(socket.AF_INET, ("127.0.0.1", port))


def connect_ipv6(port: int) -> socket.socket:
    """Connect to the server's IPv6 listener, which sits at [::1]:``port`` + 1."""
    return _connect(socket.AF_INET6, ("::1", port + 1, 0, 0))


class SocketServer:
    """Accepts loopback connections on ``port`` (IPv4) and ``port + 1`` (IPv6)."""

    def __init__(self, port: int | None = None, rng: _Rng | None = None) -> None:
        self.port = port if port is not None else select_port_number(rng)
        self._stop = threading.Event()
        self._listeners: list[socket.socket] = []
        self._threads: list[threading.Thread] = []
        self._clients: list[socket.socket] = []
        self._clients_lock = threading.Lock()

    @staticmethod
    def _listener(family: socket.AddressFamily, address: tuple) -> socket.socket:
        sock = socket.socket(family, socket.SOCK_STREAM)
        try:
            sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
            sock.bind(address)
            sock.listen(_BACKLOG)
            sock.settimeout(_POLL_SECONDS)
        except OSError:
            sock.close()
            raise
        return sock

    def _accept_loop(self, listener: socket.socket) -> None:
        while not self._stop.is_set():
            try:
                conn, _ = listener.accept()
            except socket.timeout:
                continue
            except OSError as exc:
                if not self._stop.is_set():
                    log.error("accept: %s", exc)
                return
            with self._clients_lock:
                self._clients.append(conn)

    def start(self) -> None:
        """Bind both listeners and start accepting in background threads."""
        if self._threads:
            raise RuntimeError("socket server is already running")
        log.info("Setting up socket server")
        self._stop.clear()
        ipv4 = self._listener(socket.AF_INET, ("127.0.0.1", self.port))
        try:
            ipv6 = self._listener(socket.AF_INET6, ("::1", self.port + 1, 0, 0))
        except OSError:
            ipv4.close()
            raise
        self._listeners = [ipv4, ipv6]
        log.info("Starting socket server")
        for listener in self._listeners:
            thread = threading.Thread(
                target=self._accept_loop, args=(listener,), daemon=True
            )
            thread.start()
            self._threads.append(thread)

    def stop(self) -> None:
        """Stop accepting and close every listener and accepted connection."""
        self._stop.set()
        for thread in self._threads:
            thread.join()
        self._threads.clear()
        for listener in self._listeners:
            listener.close()
        self._listeners.clear()
        with self._clients_lock:
            for client in self._clients:
                client.close()
            self._clients.clear()

    def connect_ipv4(self) -> socket.socket:
        """Open a connection to this server over IPv4."""
        return connect_ipv4(self.port)

    def connect_ipv6(self) -> socket.socket:
        """Open a connection to this server over IPv6."""
        return connect_ipv6(self.port)

    def __enter__(self) -> SocketServer:
        self.start()
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.stop()


def setup_network_module(mode: NetworkMode) -> SocketServer:
    """Set up the network facility ``mode`` names and return it running."""
    if mode is NetworkMode.SOCKET_SERVER:
        server = SocketServer()
        server.start()
        return server
    raise ValueError(f"Unknown setup option: {mode!r}")