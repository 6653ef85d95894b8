"""Command logic for a chat bot serving Rust communities: crates, docs, Godbolt and playground."""

__version__ = "0.1.0"