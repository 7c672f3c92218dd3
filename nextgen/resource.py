"""Pools of ready-made resources (files, descriptors, sockets, paths) for test cases."""

from __future__ import annotations

import logging
import os
import random
import socket
import string
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Callable, Protocol

from nextgen.memory import MemoryBlock, SharedPool, free_shared
from nextgen.network import NetworkMode, SocketServer, setup_network_module

log = logging.getLogger(__name__)

POOL_SIZE = 16
_JUNK_SIZE = 4095
_PATH_MAX = 4096
_DESC_SIZE = 8
_SOCKET_SIZE = 4
_NAME_LENGTH = 8
_NAME_ALPHABET = string.ascii_letters + string.digits


class _Rng(Protocol):
    def randint(self, a: int, b: int) -> int: ...


def generate_name(extension: str | None = None, rng: _Rng | None = None) -> str:
    """Return a random file or directory name, with ``extension`` appended if given."""
    rng = rng if rng is not None else random.SystemRandom()
    last = len(_NAME_ALPHABET) - 1
    name = "".join(_NAME_ALPHABET[rng.randint(0, last)] for _ in range(_NAME_LENGTH))
    return name + (extension or "")


@dataclass(eq=False)
class ResourceContext:
    """A resource stored in a pool block, linked back to that block."""

    m_blk: MemoryBlock
    value: Any


def _attach(block: MemoryBlock, value: Any) -> None:
    # The pool's own mapping is replaced by the resource it now carries.
    free_shared(block.ptr)
    block.ptr = ResourceContext(m_blk=block, value=value)


class ResourcePools:
    """Pools of descriptors, sockets, file paths and directory paths under ``path``."""

    def __init__(
        self,
        path: str | os.PathLike[str],
        pool_size: int = POOL_SIZE,
        rng: _Rng | None = None,
        connect: Callable[[], socket.socket] | None = None,
    ) -> None:
        if pool_size <= 0:
            raise ValueError("pool_size must be positive")
        self.path = os.fspath(path)
        self.pool_size = pool_size
        self._rng = rng if rng is not None else random.SystemRandom()
        self._connect = connect
        self.server: SocketServer | None = None
        self._desc_pool: SharedPool | None = None
        self._mount_pool: SharedPool | None = None
        self._dirpath_pool: SharedPool | None = None
        self._file_pool: SharedPool | None = None
        self._socket_pool: SharedPool | None = None

    # -- creation -----------------------------------------------------------

    def _write_junk_file(self) -> str:
        file_path = f"{self.path}/{generate_name('.txt', self._rng)}"
        Path(file_path).write_bytes(os.urandom(_JUNK_SIZE))
        return file_path

    def _create_file_pool(self) -> None:
        pool = SharedPool(_PATH_MAX + 1, self.pool_size)
        self._file_pool = pool
        for block in pool.free_blocks():
            _attach(block, self._write_junk_file())

    def _create_socket_pool(self) -> None:
        pool = SharedPool(_SOCKET_SIZE, self.pool_size)
        self._socket_pool = pool
        connect = self._connect
        if connect is None:
            raise RuntimeError("no way to create sockets")
        for block in pool.free_blocks():
            _attach(block, connect())

    def _create_fd_pool(self) -> None:
        pool = SharedPool(_DESC_SIZE, self.pool_size)
        self._desc_pool = pool
        for block in pool.free_blocks():
            file_path = self._write_junk_file()
            _attach(block, os.open(file_path, os.O_RDWR, 0o777))

    def _create_dirpath_pool(self) -> None:
        pool = SharedPool(_PATH_MAX + 1, self.pool_size)
        self._dirpath_pool = pool
        for block in pool.free_blocks():
            _attach(block, f"{self.path}/{generate_name(None, self._rng)}")

    def setup(self) -> None:
        """Start the socket server if needed and fill every pool."""
        log.info("Creating resource pools")
        try:
            if self._connect is None:
                self.server = setup_network_module(NetworkMode.SOCKET_SERVER)
                self._connect = self.server.connect_ipv6
            self._create_file_pool()
            self._create_socket_pool()
            self._create_fd_pool()
            self._create_dirpath_pool()
        except Exception:
            self._release()
            raise

    # -- lending ------------------------------------------------------------

    @staticmethod
    def _take(pool: SharedPool | None, what: str) -> Any:
        if pool is None:
            raise RuntimeError(f"{what} pool is not set up")
        return pool.get_block().ptr.value

    @staticmethod
    def _give_back(pool: SharedPool | None, what: str, match: Callable[[Any], bool]) -> None:
        if pool is None:
            raise RuntimeError(f"{what} pool is not set up")
        for block in pool.allocated_blocks():
            if match(block.ptr.value):
                pool.free_block(block)
                return

    def get_desc(self) -> int:
        """Borrow an open read-write file descriptor."""
        return self._take(self._desc_pool, "descriptor")

    def free_desc(self, fd: int) -> None:
        """Return a borrowed descriptor to its pool."""
        self._give_back(self._desc_pool, "descriptor", lambda value: value == fd)

    def get_socket(self) -> socket.socket:
        """Borrow a connected loopback socket."""
        return self._take(self._socket_pool, "socket")

    def free_socket(self, sock: socket.socket | int) -> None:
        """Return a borrowed socket, given as the object or its descriptor."""

        def match(value: socket.socket) -> bool:
            return value is sock or (isinstance(sock, int) and value.fileno() == sock)

        self._give_back(self._socket_pool, "socket", match)

    def get_mountpath(self) -> str:
        """Borrow a mount path."""
        return self._take(self._mount_pool, "mount path")

    def free_mountpath(self, path: str) -> None:
        """Return a borrowed mount path."""
        self._give_back(self._mount_pool, "mount path", lambda value: value == path)

    def get_dirpath(self) -> str:
        """Borrow a directory path that does not exist yet."""
        return self._take(self._dirpath_pool, "directory path")

    def free_dirpath(self, path: str) -> None:
        """Return a borrowed directory path."""
        self._give_back(self._dirpath_pool, "directory path", lambda value: value == path)

    def get_filepath(self) -> str:
        """Borrow the path of a file filled with random bytes."""
        return self._take(self._file_pool, "file path")

    def free_filepath(self, path: str) -> None:
        """Return the borrowed file path that ``path`` starts with."""
        self._give_back(self._file_pool, "file path", lambda value: path.startswith(value))

    # -- teardown -----------------------------------------------------------

    def cleanup(self) -> None:
        """Delete every file of the file pool and drop the pool."""
        pool = self._file_pool
        if pool is None:
            raise RuntimeError("File pool already clean")
        for block in pool.allocated_blocks() + pool.free_blocks():
            os.unlink(block.ptr.value)
        pool.clean()
        self._file_pool = None

    def _release(self) -> None:
        if self._desc_pool is not None:
            for block in self._desc_pool.allocated_blocks() + self._desc_pool.free_blocks():
                if isinstance(block.ptr, ResourceContext):
                    os.close(block.ptr.value)
            self._desc_pool.clean()
            self._desc_pool = None
        if self._socket_pool is not None:
            for block in self._socket_pool.allocated_blocks() + self._socket_pool.free_blocks():
                if isinstance(block.ptr, ResourceContext):
                    block.ptr.value.close()
            self._socket_pool.clean()
            self._socket_pool = None
        if self._dirpath_pool is not None:
            self._dirpath_pool.clean()
            self._dirpath_pool = None
        if self.server is not None:
            self.server.stop()
            self.server = None

    def __enter__(self) -> ResourcePools:
        return self

    def __exit__(self, *exc_info: object) -> None:
        if self._file_pool is not None:
            self.cleanup()
        self._release()


def setup_resource_module(path: str | os.PathLike[str], pool_size: int = POOL_SIZE) -> ResourcePools:
    """Create and fill resource pools whose files live under ``path``."""
    pools = ResourcePools(path, pool_size)
    pools.setup()
    return pools