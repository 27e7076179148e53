"""MemSync - keeps a relational store, a vector index and an external calendar in agreement."""

__version__ = "0.1.0"
