"""Shared utilities for checkgraph."""

from utils.env_utils import env_value
from utils.hashing import hash_json_canonical, hash_sha256_hex

__all__ = ["env_value", "hash_json_canonical", "hash_sha256_hex"]
