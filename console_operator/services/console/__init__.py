"""
Console Module

Query handle, account helpers and credential bootstrap for the pgAdmin
console attached to a cluster.
"""

from .bootstrap import CredentialBootstrapper, is_system_account
from .query_runner import ConsoleQueryRunner, get_query_runner

__all__ = [
    "CredentialBootstrapper",
    "ConsoleQueryRunner",
    "get_query_runner",
    "is_system_account",
]
