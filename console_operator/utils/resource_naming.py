"""
Resource naming utilities for console instances.

The console's Deployment, Service and PersistentVolumeClaim all share one
name derived from the cluster name, so a single helper drives all three.
"""

ADMIN_NAME_FORMAT = "{cluster_name}-admin"
CREDENTIAL_SECRET_FORMAT = "{cluster_name}-{username}-secret"


def get_admin_name(cluster_name: str) -> str:
    """
    Get the shared name of a cluster's console resources.

    Examples:
        >>> get_admin_name("acme")
        "acme-admin"
    """
    return ADMIN_NAME_FORMAT.format(cluster_name=cluster_name)


def get_credential_secret_name(cluster_name: str, username: str) -> str:
    """
    Get the expected name of the Secret holding a cluster user's credentials.

    Examples:
        >>> get_credential_secret_name("acme", "alice")
        "acme-alice-secret"
    """
    return CREDENTIAL_SECRET_FORMAT.format(cluster_name=cluster_name, username=username)


def get_console_pod_selector(cluster_name: str) -> str:
    """Label selector matching the console pods of a cluster."""
    return f"crunchy-pgadmin=true,pg-cluster={cluster_name}"


def get_cluster_selector(cluster_name: str) -> str:
    """Label selector matching resources owned by a cluster."""
    return f"pg-cluster={cluster_name}"
