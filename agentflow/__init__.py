"""Building blocks for directed tool-flow graphs: validation, tool nodes, tool manifests and run storage."""

__version__ = "0.1.0"