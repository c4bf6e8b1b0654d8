"""
Credential bootstrap for a freshly provisioned console.

Locks down the setup account, then mirrors the cluster users whose
passwords are kept in Kubernetes Secrets into the console as logins with a
saved connection to the cluster. Users that exist only inside PostgreSQL
have no retrievable password and are not mirrored.
"""

import logging
from typing import Awaitable, Callable, Optional

from kubernetes.client.rest import ApiException

from ...config import get_settings
from ...errors import ConsoleQueryError, CredentialSyncFailure, LockdownFailure
from ...schemas import ClusterRecord, CredentialSecret, ServerEntry
from ...utils.resource_naming import get_cluster_selector, get_credential_secret_name
from ..orchestration.kubernetes.client import KubernetesClient
from . import accounts
from .query_runner import ConsoleQueryRunner, get_query_runner

logger = logging.getLogger(__name__)

# Accounts the operator manages itself; never exposed through the console
SYSTEM_ACCOUNTS = frozenset({
    "postgres",
    "primaryuser",
    "pgbouncer",
    "crunchyadm",
    "ccp_monitoring",
})


def is_system_account(username: str) -> bool:
    return username in SYSTEM_ACCOUNTS


QueryRunnerFactory = Callable[[KubernetesClient, ClusterRecord], Awaitable[Optional[ConsoleQueryRunner]]]


class CredentialBootstrapper:
    """
    Runs the lockdown and credential sync against a cluster's console.

    Args:
        k8s_client: Kubernetes client
        runner_factory: Returns a query handle for the cluster's console, or
            None if the cluster has none
    """

    def __init__(
        self,
        k8s_client: KubernetesClient,
        runner_factory: QueryRunnerFactory = get_query_runner
    ):
        self.k8s_client = k8s_client
        self.runner_factory = runner_factory
        self.settings = get_settings()

    async def sync(self, cluster: ClusterRecord) -> None:
        """
        Lock down the console and mirror stored credentials into it.

        Raises:
            ConsoleUnavailableError: a console is expected but not running
            LockdownFailure: the setup account could not be disabled
            CredentialSyncFailure: a login or saved connection failed; the
                remaining users are not processed
        """
        runner = await self.runner_factory(self.k8s_client, cluster)
        if runner is None:
            logger.debug(f"[CONSOLE] Cluster {cluster.name} has no console, nothing to bootstrap")
            return

        try:
            await accounts.lock_down_setup_account(runner)
        except ConsoleQueryError as e:
            logger.error(f"[CONSOLE] Failed to lock down console for cluster {cluster.name}: {e}")
            raise LockdownFailure(f"failed to lock down console for cluster {cluster.name}") from e
        logger.info(f"[CONSOLE] Locked down setup account for cluster {cluster.name}")

        server_entry = await self._resolve_server_entry(cluster)

        try:
            secrets = await self.k8s_client.list_secrets(
                cluster.namespace, get_cluster_selector(cluster.name)
            )
        except ApiException as e:
            raise CredentialSyncFailure(f"failed to list secrets for cluster {cluster.name}: {e.reason}") from e

        synced = 0
        for secret in secrets:
            credential = CredentialSecret.from_v1_secret(secret)
            if not self._is_eligible(cluster, credential):
                continue

            username = credential.username
            try:
                await accounts.set_login_password(runner, username, credential.password.get_secret_value())
                if server_entry is not None:
                    await accounts.set_saved_connection(runner, username, server_entry)
            except ConsoleQueryError as e:
                raise CredentialSyncFailure(f"failed to sync console login for {username}: {e}") from e
            synced += 1

        logger.info(f"[CONSOLE] Synced {synced} login(s) into console for cluster {cluster.name}")

    async def _resolve_server_entry(self, cluster: ClusterRecord) -> Optional[ServerEntry]:
        try:
            service = await self.k8s_client.read_service(cluster.name, cluster.namespace)
        except ApiException as e:
            raise CredentialSyncFailure(f"failed to read service for cluster {cluster.name}: {e.reason}") from e

        entry = accounts.server_entry_from_service(service, cluster.name, self.settings.console_server_group)
        if entry is None:
            logger.warning(f"[CONSOLE] No endpoint for cluster {cluster.name}, saved connections skipped")
        return entry

    @staticmethod
    def _is_eligible(cluster: ClusterRecord, credential: CredentialSecret) -> bool:
        if not credential.username or credential.password is None:
            return False
        if credential.name != get_credential_secret_name(cluster.name, credential.username):
            return False
        if is_system_account(credential.username):
            return False
        return True
