"""
Orchestration Module

Everything that talks to the cluster orchestrator lives under here. The
console operator only targets Kubernetes.
"""

from .kubernetes import KubernetesClient, get_k8s_client

__all__ = [
    "KubernetesClient",
    "get_k8s_client",
]
