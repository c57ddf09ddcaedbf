"""ipgate allow-list.

Public API:
    AllowListChecker: per-request admission lookup against the allow-list file
    read_allowlist:   read and split the allow-list file
"""
from ipgate.allowlist.checker import AllowListChecker, read_allowlist

__all__ = ["AllowListChecker", "read_allowlist"]
