"""Nested Edge - provisions nested IoT Edge device hierarchies and their certificates."""

try:
    from nested_edge._version import version as __version__
except ImportError:
    __version__ = "0.0.0.dev0"
