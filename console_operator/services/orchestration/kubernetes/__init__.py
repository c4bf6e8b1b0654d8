"""
Kubernetes Orchestration Module

- KubernetesClient: Low-level Kubernetes API interactions
- Helpers: typed manifest builders for the console PVC, Deployment and Service
"""

from .client import KubernetesClient, get_k8s_client
from .helpers import (
    get_console_labels,
    create_pvc_manifest,
    create_console_deployment,
    create_console_service,
)

__all__ = [
    # Client
    "KubernetesClient",
    "get_k8s_client",
    # Manifest Helpers
    "get_console_labels",
    "create_pvc_manifest",
    "create_console_deployment",
    "create_console_service",
]
