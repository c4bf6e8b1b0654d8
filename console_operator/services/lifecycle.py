"""
Console lifecycle workflows.

add() and delete() run the ordered resource operations for one cluster.
add_from_task() and delete_from_task() wrap them for the task consumer:
they resolve the cluster, publish the lifecycle event, remove the finished
task and, after an add, wait for the console and bootstrap its logins.

add() does not roll back: a failure leaves the admin-enabled label set and
whatever resources were already created. delete() aborts if the label
cannot be cleared, but once it is cleared every deletion is attempted.
"""

import base64
import logging
import random
from typing import List, Optional

from kubernetes.client.rest import ApiException

from ..config import get_settings
from ..errors import (
    ConfigError,
    ConsoleOperatorError,
    ProvisioningError,
    TeardownWarning,
)
from ..events import (
    EVENT_CREATE_CONSOLE,
    EVENT_DELETE_CONSOLE,
    EventPublisher,
    build_event,
)
from ..schemas import (
    LABEL_ADMIN_ENABLED,
    ClusterRecord,
    ProvisioningFields,
    ProvisioningTask,
    StorageSpec,
)
from ..utils.resource_naming import get_admin_name
from .console.bootstrap import CredentialBootstrapper
from .orchestration.kubernetes.client import KubernetesClient
from .readiness import DeploymentReadinessWaiter
from .storage import StorageProvisioner
from .templater import DEPLOYMENT, SERVICE, ResourceTemplater

logger = logging.getLogger(__name__)


def generate_throwaway_password(length: int) -> str:
    """
    Generate the one-time setup password for a new console.

    Deliberately uses a non-cryptographic generator: the setup account is
    deactivated and its hash corrupted by the bootstrap before any user is
    given access to the console.
    """
    weak_random = random.Random()
    raw = bytes(weak_random.getrandbits(8) for _ in range(length))
    return base64.b64encode(raw).decode("ascii").rstrip("=")


class LifecycleOrchestrator:
    """Adds and removes the console that sits alongside a cluster."""

    def __init__(
        self,
        k8s_client: KubernetesClient,
        storage: Optional[StorageProvisioner] = None,
        templater: Optional[ResourceTemplater] = None,
        waiter: Optional[DeploymentReadinessWaiter] = None,
        bootstrapper: Optional[CredentialBootstrapper] = None,
        publisher: Optional[EventPublisher] = None
    ):
        self.settings = get_settings()
        self.k8s_client = k8s_client
        self.storage = storage or StorageProvisioner(k8s_client)
        self.templater = templater or ResourceTemplater()
        self.waiter = waiter or DeploymentReadinessWaiter(k8s_client)
        self.bootstrapper = bootstrapper or CredentialBootstrapper(k8s_client)
        self.publisher = publisher or EventPublisher()

    # =========================================================================
    # ADD
    # =========================================================================

    async def add(self, cluster: ClusterRecord, storage_spec: StorageSpec) -> None:
        """
        Provision the console for a cluster.

        Raises:
            ConfigError: the cluster record could not be updated; nothing was created
            ProvisioningError: a resource could not be rendered or created
        """
        logger.debug(f"[LIFECYCLE] Adding console to cluster {cluster.name}")

        await self._set_admin_enabled(cluster, True)

        name = get_admin_name(cluster.name)
        namespace = cluster.namespace

        await self.storage.ensure_volume(name, cluster.name, namespace, storage_spec)

        await self._create_deployment(cluster, name)
        await self._create_service(cluster, name)

        logger.info(f"[LIFECYCLE] Added console {name} to cluster {cluster.name}")

    async def _create_deployment(self, cluster: ClusterRecord, name: str) -> None:
        fields = ProvisioningFields(
            name=name,
            cluster_name=cluster.name,
            image_prefix=self.settings.ccp_image_prefix,
            image_tag=cluster.ccp_image_tag or self.settings.ccp_image_tag,
            disable_security_context=self.settings.disable_fs_group,
            port=self.settings.console_port,
            init_user=self.settings.console_setup_username,
            init_pass=generate_throwaway_password(self.settings.throwaway_password_length),
            volume_claim_name=name,
        )
        deployment = self.templater.render(DEPLOYMENT, fields)
        try:
            await self.k8s_client.create_deployment(deployment, cluster.namespace)
        except ApiException as e:
            raise ProvisioningError(f"Failed to create console deployment {name}: {e.reason}") from e

    async def _create_service(self, cluster: ClusterRecord, name: str) -> None:
        fields = ProvisioningFields(
            name=name,
            cluster_name=cluster.name,
            port=self.settings.console_port,
            service_port=self.settings.service_port,
        )
        service = self.templater.render(SERVICE, fields)
        try:
            await self.k8s_client.create_service(service, cluster.namespace)
        except ApiException as e:
            raise ProvisioningError(f"Failed to create console service {name}: {e.reason}") from e

    # =========================================================================
    # DELETE
    # =========================================================================

    async def delete(self, cluster: ClusterRecord) -> List[TeardownWarning]:
        """
        Remove the console from a cluster.

        Returns:
            The deletion failures, each already logged as a warning

        Raises:
            ConfigError: the cluster record could not be updated; nothing was deleted
        """
        logger.debug(f"[LIFECYCLE] Deleting console from cluster {cluster.name} in {cluster.namespace}")

        await self._set_admin_enabled(cluster, False)

        name = get_admin_name(cluster.name)
        namespace = cluster.namespace
        warnings: List[TeardownWarning] = []

        deletions = (
            ("pvc", self.k8s_client.delete_pvc),
            ("service", self.k8s_client.delete_service),
            ("deployment", self.k8s_client.delete_deployment),
        )
        for kind, delete in deletions:
            try:
                await delete(name, namespace)
            except Exception as e:
                warning = TeardownWarning(kind, name, str(e))
                logger.warning(f"[LIFECYCLE] {warning}")
                warnings.append(warning)

        logger.info(f"[LIFECYCLE] Deleted console {name} from cluster {cluster.name}")
        return warnings

    # =========================================================================
    # POST-PROVISIONING
    # =========================================================================

    async def complete_provisioning(self, cluster: ClusterRecord) -> None:
        """
        Wait for the console to come up, then bootstrap its logins.

        Failures are logged and not retried.
        """
        name = get_admin_name(cluster.name)
        try:
            await self.waiter.wait(
                cluster.namespace,
                name,
                timeout=self.settings.deploy_timeout_seconds,
                poll_interval=self.settings.readiness_poll_interval_seconds,
            )
        except ConsoleOperatorError as e:
            logger.error(f"[LIFECYCLE] {e}")

        # Lock down setup user and prepopulate connections for managed users
        try:
            await self.bootstrapper.sync(cluster)
        except ConsoleOperatorError as e:
            logger.error(f"[LIFECYCLE] Console bootstrap failed for cluster {cluster.name}: {e}")

    # =========================================================================
    # TASK ENTRY POINTS
    # =========================================================================

    async def add_from_task(self, task: ProvisioningTask) -> None:
        """Bring up the console requested by an add task."""
        logger.debug(
            f"[LIFECYCLE] Add console from task for cluster {task.cluster_name} in {task.namespace}"
        )

        cluster = await self._get_cluster(task)
        await self.add(cluster, task.storage_spec)

        await self.publisher.publish(build_event(EVENT_CREATE_CONSOLE, task))

        # the task has succeeded, so it can be removed even if what follows fails
        await self._remove_task(task)

        await self.complete_provisioning(cluster)

    async def delete_from_task(self, task: ProvisioningTask) -> None:
        """Remove the console named by a delete task."""
        logger.debug(
            f"[LIFECYCLE] Delete console from task for cluster {task.cluster_name} in {task.namespace}"
        )

        cluster = await self._get_cluster(task)
        await self.delete(cluster)

        await self.publisher.publish(build_event(EVENT_DELETE_CONSOLE, task))

        await self._remove_task(task)

    # =========================================================================
    # CLUSTER RECORD
    # =========================================================================

    async def _get_cluster(self, task: ProvisioningTask) -> ClusterRecord:
        try:
            obj = await self.k8s_client.get_cluster(task.cluster_name, task.namespace)
        except ApiException as e:
            raise ConfigError(
                f"Cluster {task.cluster_name} not found in {task.namespace}: {e.reason}"
            ) from e
        return ClusterRecord.from_resource(obj)

    async def _set_admin_enabled(self, cluster: ClusterRecord, enabled: bool) -> None:
        """
        Flip the admin-enabled label with a single conditional write.

        The record's labels are only updated once the write succeeds.
        """
        labels = dict(cluster.labels)
        labels[LABEL_ADMIN_ENABLED] = "true" if enabled else "false"
        body = cluster.to_resource()
        body["metadata"]["labels"] = labels
        try:
            updated = await self.k8s_client.replace_cluster(body)
        except ApiException as e:
            if e.status == 409:
                raise ConfigError(f"Cluster {cluster.name} was modified concurrently") from e
            if e.status == 404:
                raise ConfigError(f"Cluster {cluster.name} not found in {cluster.namespace}") from e
            raise ConfigError(f"Failed to update cluster {cluster.name}: {e.reason}") from e

        cluster.labels = labels
        if updated:
            cluster.resource = updated

    async def _remove_task(self, task: ProvisioningTask) -> None:
        try:
            await self.k8s_client.delete_task(task.name, task.namespace)
        except ApiException as e:
            logger.warning(f"[LIFECYCLE] Failed to remove task {task.name}: {e.reason}")
