"""
Node providers for the Starknet Hive SDK.
"""
from .base import Provider
from .jsonrpc import JsonRpcProvider

__all__ = ["Provider", "JsonRpcProvider"]
