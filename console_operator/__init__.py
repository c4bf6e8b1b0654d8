"""
Console Operator

Adds and removes the pgAdmin console that runs alongside a PostgreSQL
cluster, and bootstraps its logins from the cluster's credential secrets.
"""

__version__ = "0.1.0"
