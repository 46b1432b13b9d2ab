"""Encrypted peer-to-peer backup building blocks: hashing, encryption, indexing, protocol and settings."""

__version__ = "0.1.0"

__all__ = [
    "bincode",
    "cert",
    "config",
    "crypto",
    "errors",
    "fs",
    "hashing",
    "prompt",
    "protocol",
    "util",
]