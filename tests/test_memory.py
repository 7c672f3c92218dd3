import mmap
import multiprocessing
import threading

import pytest

from nextgen.memory import (
    MemoryBlock,
    PoolExhaustedError,
    SharedPool,
    alloc,
    alloc_shared,
    calloc,
    calloc_shared,
    free_shared,
)

COUNT = 1024
ITERATIONS = 10000
TEST_OBJ_SIZE = 16

_FORK = multiprocessing.get_context("fork")


def test_mem_alloc_zero_fails():
    with pytest.raises(ValueError):
        alloc(0)


def test_mem_alloc_size():
    buf = alloc(10)
    assert len(buf) == 10


def test_mem_calloc_is_zeroed():
    buffer = calloc(1000)
    assert len(buffer) == 1000
    assert all(byte == 0 for byte in buffer)


def test_mem_calloc_zero_fails():
    with pytest.raises(ValueError):
        calloc(0)


def test_mem_alloc_shared_zero_fails():
    with pytest.raises(ValueError):
        alloc_shared(0)


def test_mem_calloc_shared_zero_fails():
    with pytest.raises(ValueError):
        calloc_shared(0)


def test_mem_free_shared_closes_buffer():
    buffer = alloc_shared(100)
    assert buffer.closed is False
    free_shared(buffer)
    assert buffer.closed is True
    free_shared(buffer)
    assert buffer.closed is True


def test_mem_calloc_shared_is_zeroed():
    buf = calloc_shared(10)
    assert len(buf) == 10
    assert buf[:] == bytes(10)
    free_shared(buf)


def _write_test(buf):
    buf[:4] = b"test"


def _report_zeroed(buf, result):
    result[0] = 1 if buf[:] == bytes(len(buf)) else 2


def test_mem_alloc_shared_visible_to_child():
    buf = alloc_shared(10)
    child = _FORK.Process(target=_write_test, args=(buf,))
    child.start()
    child.join()
    assert child.exitcode == 0
    assert buf[:4] == b"test"
    free_shared(buf)


def test_mem_calloc_shared_zeroed_in_child():
    buf = calloc_shared(10)
    result = calloc_shared(1)
    child = _FORK.Process(target=_report_zeroed, args=(buf, result))
    child.start()
    child.join()
    assert child.exitcode == 0
    assert result[0] == 1
    free_shared(buf)
    free_shared(result)


def test_shared_pool_rejects_zero_block_size():
    with pytest.raises(ValueError):
        SharedPool(0, COUNT)


def test_shared_pool_rejects_zero_block_count():
    with pytest.raises(ValueError):
        SharedPool(TEST_OBJ_SIZE, 0)


def _cycle(pool, iterations, failures):
    for _ in range(iterations):
        try:
            block = pool.get_block()
        except PoolExhaustedError:
            failures.append("exhausted")
            return
        if block.ptr is None:
            failures.append("empty block")
        pool.free_block(block)


def test_shared_pool():
    pool = SharedPool(TEST_OBJ_SIZE, COUNT)
    assert pool.block_size == TEST_OBJ_SIZE
    assert pool.block_count == COUNT

    number_of_blocks = 0
    for block in pool.free_blocks():
        assert isinstance(block.ptr, mmap.mmap)
        assert len(block.ptr) == TEST_OBJ_SIZE
        block.ptr = {"value": number_of_blocks}
        number_of_blocks += 1
    assert number_of_blocks == COUNT

    for _ in range(ITERATIONS):
        block = pool.get_block()
        assert block.ptr is not None
        pool.free_block(block)

    failures = []
    threads = [
        threading.Thread(target=_cycle, args=(pool, ITERATIONS, failures))
        for _ in range(2)
    ]
    for thread in threads:
        thread.start()
    _cycle(pool, ITERATIONS, failures)
    for thread in threads:
        thread.join()

    assert failures == []
    assert len(pool.free_blocks()) == COUNT
    assert pool.allocated_blocks() == []


def test_get_block_moves_block_to_allocated():
    pool = SharedPool(8, 3)
    block = pool.get_block()
    assert pool.allocated_blocks() == [block]
    assert block not in pool.free_blocks()
    assert len(pool.free_blocks()) == 2
    pool.free_block(block)
    assert pool.allocated_blocks() == []
    assert pool.free_blocks()[0] is block


def test_pool_exhaustion_raises():
    pool = SharedPool(8, 2)
    first = pool.get_block()
    second = pool.get_block()
    assert first is not second
    with pytest.raises(PoolExhaustedError):
        pool.get_block()


def test_free_foreign_block_raises():
    pool = SharedPool(8, 2)
    with pytest.raises(ValueError):
        pool.free_block(MemoryBlock(b"x"))


def test_clean_releases_blocks():
    pool = SharedPool(8, 4)
    taken = pool.get_block()
    buffers = [block.ptr for block in pool.free_blocks()] + [taken.ptr]
    pool.clean()
    assert pool.free_blocks() == []
    assert pool.allocated_blocks() == []
    assert all(buffer.closed for buffer in buffers)


def test_pool_context_manager_cleans():
    with SharedPool(8, 2) as pool:
        buffers = [block.ptr for block in pool.free_blocks()]
    assert all(buffer.closed for buffer in buffers)
    assert pool.free_blocks() == []