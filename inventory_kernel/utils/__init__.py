"""Kernel utilities."""

from inventory_kernel.utils.hashing import canonicalize_json, hash_payload, hash_rows

__all__ = ["canonicalize_json", "hash_payload", "hash_rows"]
