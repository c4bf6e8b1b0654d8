"""
Kubernetes Client for Console Resources

This module provides the interface to the Kubernetes API used by the
console workflows: PVCs, Deployments, Services, Secrets, console pods and
the cluster/task custom resources.

The official client is synchronous; every call is run in a worker thread
so the workflows can await it without blocking the event loop.
"""

from kubernetes import client, config, watch
from kubernetes.client.rest import ApiException
from kubernetes.stream import stream
import logging
import asyncio
from typing import Any, Dict, Iterator, List, Optional

from ....config import get_settings

logger = logging.getLogger(__name__)

FOREGROUND = "Foreground"


class KubernetesClient:
    """
    Manages the Kubernetes resources that make up a console instance.

    API objects can be injected (tests do this); otherwise in-cluster
    configuration is tried first, then the local kubeconfig.
    """

    def __init__(
        self,
        apps_v1: Optional[client.AppsV1Api] = None,
        core_v1: Optional[client.CoreV1Api] = None,
        custom_objects: Optional[client.CustomObjectsApi] = None
    ):
        self.settings = get_settings()

        if apps_v1 is None or core_v1 is None or custom_objects is None:
            try:
                # Try in-cluster config first (for production)
                config.load_incluster_config()
                logger.info("Loaded in-cluster Kubernetes configuration")
            except config.ConfigException:
                try:
                    # Fall back to kubeconfig (for development)
                    config.load_kube_config()
                    logger.info("Loaded kubeconfig for development")
                except config.ConfigException as e:
                    logger.error(f"Failed to load Kubernetes config: {e}")
                    raise RuntimeError("Cannot load Kubernetes configuration") from e

        self.apps_v1 = apps_v1 or client.AppsV1Api()
        self.core_v1 = core_v1 or client.CoreV1Api()
        self.custom_objects = custom_objects or client.CustomObjectsApi()

    # =========================================================================
    # PVC MANAGEMENT
    # =========================================================================

    async def read_pvc(self, name: str, namespace: str) -> Optional[client.V1PersistentVolumeClaim]:
        """Read a PVC, returning None if it does not exist."""
        try:
            return await asyncio.to_thread(
                self.core_v1.read_namespaced_persistent_volume_claim,
                name=name,
                namespace=namespace
            )
        except ApiException as e:
            if e.status == 404:
                return None
            raise

    async def create_pvc(
        self,
        pvc: client.V1PersistentVolumeClaim,
        namespace: str
    ) -> bool:
        """Create a PVC if it doesn't exist (PVCs are immutable). Returns True if created."""
        pvc_name = pvc.metadata.name
        try:
            await asyncio.to_thread(
                self.core_v1.create_namespaced_persistent_volume_claim,
                namespace=namespace,
                body=pvc
            )
            logger.info(f"[K8S] Created PVC: {pvc_name}")
            return True
        except ApiException as e:
            if e.status == 409:
                logger.info(f"[K8S] PVC {pvc_name} already exists, skipping")
                return False
            raise

    async def delete_pvc(self, name: str, namespace: str, propagation_policy: str = FOREGROUND) -> None:
        """Delete a PVC."""
        try:
            await asyncio.to_thread(
                self.core_v1.delete_namespaced_persistent_volume_claim,
                name=name,
                namespace=namespace,
                body=client.V1DeleteOptions(propagation_policy=propagation_policy)
            )
            logger.info(f"[K8S] Deleted PVC: {name}")
        except ApiException as e:
            if e.status != 404:
                raise

    # =========================================================================
    # DEPLOYMENT LIFECYCLE
    # =========================================================================

    async def create_deployment(
        self,
        deployment: Any,
        namespace: str
    ) -> None:
        """
        Create a Deployment (typed object or plain manifest).

        An existing Deployment is left untouched and surfaces as a 409
        ApiException, so a repeated add never swaps the setup password of
        a running console.
        """
        deployment_name = _manifest_name(deployment)
        try:
            await asyncio.to_thread(
                self.apps_v1.create_namespaced_deployment,
                namespace=namespace,
                body=deployment
            )
        except ApiException as e:
            if e.status == 409:
                logger.error(f"[K8S] Deployment {deployment_name} already exists in {namespace}")
            raise
        logger.info(f"[K8S] Created deployment: {deployment_name}")

    async def read_deployment(self, name: str, namespace: str) -> client.V1Deployment:
        """Read a Deployment. Errors, including 404, are raised to the caller."""
        return await asyncio.to_thread(
            self.apps_v1.read_namespaced_deployment,
            name=name,
            namespace=namespace
        )

    async def delete_deployment(self, name: str, namespace: str, propagation_policy: str = FOREGROUND) -> None:
        """Delete a Deployment."""
        try:
            await asyncio.to_thread(
                self.apps_v1.delete_namespaced_deployment,
                name=name,
                namespace=namespace,
                body=client.V1DeleteOptions(propagation_policy=propagation_policy)
            )
            logger.info(f"[K8S] Deleted deployment: {name}")
        except ApiException as e:
            if e.status != 404:
                raise

    # =========================================================================
    # SERVICE MANAGEMENT
    # =========================================================================

    async def create_service(
        self,
        service: Any,
        namespace: str
    ) -> None:
        """Create a Service (typed object or plain manifest). An existing Service raises a 409."""
        service_name = _manifest_name(service)
        try:
            await asyncio.to_thread(
                self.core_v1.create_namespaced_service,
                namespace=namespace,
                body=service
            )
        except ApiException as e:
            if e.status == 409:
                logger.error(f"[K8S] Service {service_name} already exists in {namespace}")
            raise
        logger.info(f"[K8S] Created service: {service_name}")

    async def read_service(self, name: str, namespace: str) -> Optional[client.V1Service]:
        """Read a Service, returning None if it does not exist."""
        try:
            return await asyncio.to_thread(
                self.core_v1.read_namespaced_service,
                name=name,
                namespace=namespace
            )
        except ApiException as e:
            if e.status == 404:
                return None
            raise

    async def delete_service(self, name: str, namespace: str) -> None:
        """Delete a Service."""
        try:
            await asyncio.to_thread(
                self.core_v1.delete_namespaced_service,
                name=name,
                namespace=namespace
            )
            logger.info(f"[K8S] Deleted service: {name}")
        except ApiException as e:
            if e.status != 404:
                raise

    # =========================================================================
    # SECRETS AND PODS
    # =========================================================================

    async def list_secrets(self, namespace: str, label_selector: str) -> List[client.V1Secret]:
        secrets = await asyncio.to_thread(
            self.core_v1.list_namespaced_secret,
            namespace=namespace,
            label_selector=label_selector
        )
        return list(secrets.items)

    async def list_pods(self, namespace: str, label_selector: str) -> List[client.V1Pod]:
        pods = await asyncio.to_thread(
            self.core_v1.list_namespaced_pod,
            namespace=namespace,
            label_selector=label_selector
        )
        return list(pods.items)

    def _get_stream_client(self) -> client.CoreV1Api:
        """
        Create a fresh CoreV1Api client for stream operations.

        `stream()` temporarily patches the api_client.request method to use
        WebSocket, which would break concurrent regular calls sharing
        self.core_v1.
        """
        return client.CoreV1Api()

    def _exec_in_pod(
        self,
        pod_name: str,
        namespace: str,
        command: List[str],
        container_name: Optional[str] = None,
        timeout: int = 30
    ) -> str:
        """Execute a command in a pod and return its output (stdout + stderr)."""
        logger.debug(f"[K8S:EXEC] Executing in pod {pod_name}: {command[0]}")
        return stream(
            self._get_stream_client().connect_get_namespaced_pod_exec,
            pod_name,
            namespace,
            container=container_name,
            command=command,
            stderr=True,
            stdin=False,
            stdout=True,
            tty=False,
            _preload_content=True,
            _request_timeout=timeout
        )

    async def exec_in_pod(
        self,
        pod_name: str,
        namespace: str,
        command: List[str],
        container_name: Optional[str] = None,
        timeout: int = 30
    ) -> str:
        try:
            return await asyncio.to_thread(
                self._exec_in_pod, pod_name, namespace, command, container_name, timeout
            )
        except Exception as e:
            logger.error(f"[K8S:EXEC] Command failed in pod {pod_name}: {e}")
            raise RuntimeError(f"Failed to execute command in pod: {str(e)}") from e

    # =========================================================================
    # CUSTOM RESOURCES (clusters and tasks)
    # =========================================================================

    async def get_cluster(self, name: str, namespace: str) -> Dict[str, Any]:
        return await asyncio.to_thread(
            self.custom_objects.get_namespaced_custom_object,
            group=self.settings.crd_group,
            version=self.settings.crd_version,
            namespace=namespace,
            plural=self.settings.cluster_plural,
            name=name
        )

    async def replace_cluster(self, body: Dict[str, Any]) -> Dict[str, Any]:
        """
        Replace a cluster resource.

        The body carries metadata.resourceVersion, so a concurrent
        modification surfaces as a 409 instead of being overwritten.
        """
        metadata = body["metadata"]
        return await asyncio.to_thread(
            self.custom_objects.replace_namespaced_custom_object,
            group=self.settings.crd_group,
            version=self.settings.crd_version,
            namespace=metadata["namespace"],
            plural=self.settings.cluster_plural,
            name=metadata["name"],
            body=body
        )

    async def delete_task(self, name: str, namespace: str) -> None:
        await asyncio.to_thread(
            self.custom_objects.delete_namespaced_custom_object,
            group=self.settings.crd_group,
            version=self.settings.crd_version,
            namespace=namespace,
            plural=self.settings.task_plural,
            name=name
        )
        logger.info(f"[K8S] Deleted task: {name}")

    def watch_tasks(self, namespace: str, timeout_seconds: int = 300) -> Iterator[Dict[str, Any]]:
        """Blocking stream of task watch events; run it in a thread."""
        task_watch = watch.Watch()
        try:
            yield from task_watch.stream(
                self.custom_objects.list_namespaced_custom_object,
                group=self.settings.crd_group,
                version=self.settings.crd_version,
                namespace=namespace,
                plural=self.settings.task_plural,
                timeout_seconds=timeout_seconds
            )
        finally:
            task_watch.stop()


def _manifest_name(manifest: Any) -> str:
    if isinstance(manifest, dict):
        return manifest.get("metadata", {}).get("name", "")
    return manifest.metadata.name


# Global instance - lazily initialized
_k8s_client_instance: Optional[KubernetesClient] = None


def get_k8s_client() -> KubernetesClient:
    """Get or create the global Kubernetes client instance."""
    global _k8s_client_instance
    if _k8s_client_instance is None:
        _k8s_client_instance = KubernetesClient()
    return _k8s_client_instance
