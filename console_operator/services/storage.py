"""
Console data volume provisioning.
"""

import logging

from kubernetes.client.rest import ApiException

from ..errors import ProvisioningError
from ..schemas import StorageSpec
from .orchestration.kubernetes.client import KubernetesClient
from .orchestration.kubernetes.helpers import create_pvc_manifest

logger = logging.getLogger(__name__)


class StorageProvisioner:
    """Ensures a cluster's console has a PersistentVolumeClaim."""

    def __init__(self, k8s_client: KubernetesClient):
        self.k8s_client = k8s_client

    async def ensure_volume(
        self,
        name: str,
        owner_cluster_name: str,
        namespace: str,
        storage_spec: StorageSpec
    ) -> bool:
        """
        Create the PVC unless one with this name already exists.

        The claim carries the owning cluster's label so it is cleaned up
        with the cluster.

        Returns:
            True if a claim was created, False if it was already present

        Raises:
            ProvisioningError: the claim could not be read or created
        """
        try:
            existing = await self.k8s_client.read_pvc(name, namespace)
        except ApiException as e:
            raise ProvisioningError(f"Failed to look up PVC {name} in {namespace}: {e.reason}") from e

        if existing is not None:
            logger.debug(f"[K8S] PVC {name} already exists in {namespace}")
            return False

        pvc = create_pvc_manifest(name, owner_cluster_name, namespace, storage_spec)
        try:
            created = await self.k8s_client.create_pvc(pvc, namespace)
        except ApiException as e:
            raise ProvisioningError(f"Failed to create PVC {name} in {namespace}: {e.reason}") from e

        if created:
            logger.info(f"[K8S] Created console PVC {name} in namespace {namespace}")
        return created
