# nextgen

Building blocks for a fuzz tester, used as a library: buffers and a
thread-safe pool of shared memory blocks, a loopback TCP server, a
registry of plugin files, in-place file mutators, and pools of ready-made
resources (files, descriptors, sockets, paths) to hand to test cases.

## Installing

```
pip install .
pip install ".[test]"   # with pytest
```

There are no runtime dependencies beyond the standard library. The
package targets POSIX systems; the socket server needs IPv6 on loopback.

## Modules

### `nextgen.memory`

- `alloc(nbytes)` and `calloc(nbytes)` return a zeroed `bytearray`;
  `alloc_shared(nbytes)` and `calloc_shared(nbytes)` return an anonymous
  `mmap.mmap` that forked children share. A size of zero or less raises
  `ValueError`.
- `free_shared(buffer)` closes a mapping; `None` or an already closed
  mapping is ignored.
- `SharedPool(block_size, block_count)` creates `block_count`
  `MemoryBlock`s, each with a shared mapping of `block_size` bytes in its
  `ptr` field. `get_block()` moves a block from the free list to the
  allocated list and raises `PoolExhaustedError` when none is free;
  `free_block(block)` returns it (a block the pool did not hand out
  raises `ValueError`). `free_blocks()` and `allocated_blocks()` list the
  blocks head first, and `clean()` drops all blocks and closes their
  mappings. A pool is a context manager that cleans itself on exit.

### `nextgen.network`

- `SocketServer(port=None, rng=None)` listens on `127.0.0.1:port` and
  `[::1]:port + 1` and accepts connections in background threads until
  `stop()`. `start()` binds both listeners; the server is also a context
  manager. `connect_ipv4()` and `connect_ipv6()` open client sockets to it.
- `select_port_number(rng=None)` picks a port from 1200 to 11200.
- `connect_ipv4(port)` and `connect_ipv6(port)` connect to a server's
  listeners (the IPv6 one is at `port + 1`).
- `setup_network_module(NetworkMode.SOCKET_SERVER)` returns a started
  server; any other mode raises `ValueError`.

### `nextgen.plugins`

- `PluginRegistry(directory="src/plugins")` lists the non-hidden files
  whose extension starts with `.so`. `count_plugins()` counts them;
  `load_all()` checks each can be opened and records it as a
  `PluginContext` (name, absolute path, declared formats), raising
  `PluginLoadError` if one cannot be opened.
- `supported_file(extension)` returns the offset of a plugin that
  declares the extension, or `None`. Plugins found in a directory declare
  no formats, so for them it always returns `None`.
- `features_supported(offset)` returns `0` and
  `feature_constraints(offset)` returns an empty `FeatureConstraints`;
  an offset with no plugin raises `IndexError`.
- `setup_plugin_module(directory)` counts and loads a directory.

### `nextgen.mutate`

All mutators change a `bytearray` in place and raise `ValueError` for
empty data. Each takes an optional `rng` with a `randint` method.

- `flip_byte_mutator` inverts one random byte, `flip_bit_mutator` flips
  one random bit, and `xor_mutator` leaves the data unchanged.
- `mutate_file_randomly(data, rng)` applies one of the three at random.
- `mutate_file(data, file_extension, registry=None, rng=None)` mutates
  randomly when no registry knows the extension. When a plugin does, it
  mutates randomly on one draw in eleven and otherwise only picks a
  feature and logs it, leaving the data unchanged.
- `mutate_arguments(ctx)` raises `ValueError` for `None` and otherwise
  leaves the context as it is.

### `nextgen.resource`

- `ResourcePools(path, pool_size=16, rng=None, connect=None)`; after
  `setup()` it holds pools of:
  - file paths under `path`, each a file of 4095 random bytes
    (`get_filepath` / `free_filepath`),
  - open read-write descriptors to further such files
    (`get_desc` / `free_desc`),
  - connected loopback sockets (`get_socket` / `free_socket`); unless
    `connect` is given, `setup()` starts a `SocketServer` and connects
    over IPv6,
  - directory paths under `path` that are not created
    (`get_dirpath` / `free_dirpath`).
- A `get_*` call on an exhausted pool raises `PoolExhaustedError`; on a
  pool that was never set up, `RuntimeError`.
- `cleanup()` deletes every file of the file pool; used as a context
  manager, the pools also close their descriptors and sockets and stop
  the server on exit.
- `generate_name(extension=None, rng=None)` returns eight random letters
  and digits plus the extension.
- `setup_resource_module(path, pool_size=16)` returns filled pools.

## Example

```python
import random
import tempfile

from nextgen.memory import SharedPool
from nextgen.mutate import mutate_file_randomly
from nextgen.resource import ResourcePools

pool = SharedPool(block_size=64, block_count=4)
block = pool.get_block()
pool.free_block(block)
pool.clean()

data = bytearray(b"hello world")
mutate_file_randomly(data, random.Random(1))

with tempfile.TemporaryDirectory() as tmp:
    with ResourcePools(tmp, pool_size=4) as pools:
        pools.setup()
        path = pools.get_filepath()
        pools.free_filepath(path)
```

## What it does not do

- It has no command line and does not start or watch a program under
  test; it only provides the pieces such a tester would use.
- Plugin files are found and opened but their code is never run, so no
  file format is understood and `mutate_file` falls back to random
  mutation.
- The mount path pool is never filled: `get_mountpath` and
  `free_mountpath` raise `RuntimeError`.
- There is no system call fuzzing; `mutate_arguments` changes nothing.

## Tests

```
pytest
```