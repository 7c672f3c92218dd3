"""Heap and shared-memory buffers, and a thread-safe pool of shared blocks."""

from __future__ import annotations

import mmap
import threading
from dataclasses import dataclass
from typing import Any


class PoolExhaustedError(Exception):
    """Raised when a shared pool has no free block left."""


def _check_size(nbytes: int) -> None:
    if nbytes <= 0:
        raise ValueError(f"can't allocate {nbytes} bytes")


def alloc(nbytes: int) -> bytearray:
    """Return a private buffer of ``nbytes`` bytes."""
    _check_size(nbytes)
    return bytearray(nbytes)


def calloc(nbytes: int) -> bytearray:
    """Return a private buffer of ``nbytes`` zero bytes."""
    _check_size(nbytes)
    return bytearray(nbytes)


def alloc_shared(nbytes: int) -> mmap.mmap:
    """Return an anonymous mapping that is shared with forked children."""
    _check_size(nbytes)
    return mmap.mmap(-1, nbytes)


def calloc_shared(nbytes: int) -> mmap.mmap:
    """Return a zero-filled anonymous shared mapping of ``nbytes`` bytes."""
    _check_size(nbytes)
    buffer = mmap.mmap(-1, nbytes)
    buffer[:] = bytes(nbytes)
    return buffer


def free_shared(buffer: mmap.mmap | None) -> None:
    """Release a shared mapping; releasing ``None`` or a closed one does nothing."""
    if buffer is None or buffer.closed:
        return
    buffer.close()


@dataclass(eq=False)
class MemoryBlock:
    """One block of a shared pool; ``ptr`` holds whatever the user stores."""

    ptr: Any = None


class SharedPool:
    """A fixed set of shared memory blocks handed out and returned under a lock."""

    def __init__(self, block_size: int, block_count: int) -> None:
        if block_size <= 0:
            raise ValueError("block_size is zero")
        if block_count <= 0:
            raise ValueError("block_count is zero")
        self.block_size = block_size
        self.block_count = block_count
        self._lock = threading.Lock()
        # The last element of each list is the head: blocks are taken and
        # returned at the head.
        self._free: list[MemoryBlock] = [
            MemoryBlock(alloc_shared(block_size)) for _ in range(block_count)
        ]
        self._allocated: list[MemoryBlock] = []

    def get_block(self) -> MemoryBlock:
        """Move a block from the free list to the allocated list and return it."""
        with self._lock:
            if not self._free:
                raise PoolExhaustedError("no free block in pool")
            block = self._free.pop()
            self._allocated.append(block)
            return block

    def free_block(self, block: MemoryBlock) -> None:
        """Return an allocated block to the free list."""
        with self._lock:
            try:
                self._allocated.remove(block)
            except ValueError:
                raise ValueError("block is not allocated from this pool") from None
            self._free.append(block)

    def free_blocks(self) -> list[MemoryBlock]:
        """Return the free blocks, head first."""
        with self._lock:
            return self._free[::-1]

    def allocated_blocks(self) -> list[MemoryBlock]:
        """Return the allocated blocks, head first."""
        with self._lock:
            return self._allocated[::-1]

    def clean(self) -> None:
        """Drop every block and release the shared mappings the pool created."""
        with self._lock:
            blocks = self._free + self._allocated
            self._free.clear()
            self._allocated.clear()
        for block in blocks:
            if isinstance(block.ptr, mmap.mmap):
                free_shared(block.ptr)

    def __enter__(self) -> SharedPool:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.clean()