"""Building blocks for a fuzz tester: shared memory pools, a loopback socket server, plugin discovery, file mutators and resource pools."""

__version__ = "0.1.0"
__all__ = ["memory", "network", "plugins", "mutate", "resource"]