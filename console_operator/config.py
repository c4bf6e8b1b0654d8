from pydantic import Field
from pydantic_settings import BaseSettings
from functools import lru_cache
from typing import List


class Settings(BaseSettings):
    # Logging level: DEBUG, INFO, WARNING, ERROR, CRITICAL
    log_level: str = "INFO"

    # When True, rendered Deployment/Service documents are dumped to the debug log
    debug: bool = False

    # ==========================================================================
    # Console Image Settings
    # ==========================================================================
    ccp_image_prefix: str = "registry.developers.crunchydata.com/crunchydata"
    ccp_image_tag: str = "centos8-13.1-4.6.0"  # Used when the cluster record has no tag
    console_image_name: str = "crunchy-pgadmin4"
    console_image_override: str = ""  # Full image reference, replaces the computed one

    # Skip the pod fsGroup (e.g. OpenShift assigns its own)
    disable_fs_group: bool = False

    # ==========================================================================
    # Console Runtime Settings
    # ==========================================================================
    console_port: int = 5050
    console_service_port: int = 0  # 0 = same as console_port
    console_setup_username: str = "pgadminsetup"
    throwaway_password_length: int = 20  # Random bytes before base64 encoding
    console_data_path: str = "/var/lib/pgadmin/pgadmin4.db"
    console_server_group: str = "Crunchy PostgreSQL Operator"

    # Readiness wait for the console Deployment (seconds)
    deploy_timeout_seconds: int = Field(60, gt=0)
    readiness_poll_interval_seconds: int = Field(3, gt=0)

    # Directory holding deployment.yaml / service.yaml overrides (empty = built-in builders)
    template_dir: str = ""

    # ==========================================================================
    # Event Bus (nsqd HTTP API)
    # ==========================================================================
    events_address: str = ""  # e.g. http://nsqd:4151 - empty disables publishing
    events_timeout_seconds: float = 5.0

    # ==========================================================================
    # Custom Resources
    # ==========================================================================
    crd_group: str = "crunchydata.com"
    crd_version: str = "v1"
    cluster_plural: str = "pgclusters"
    task_plural: str = "pgtasks"

    # ==========================================================================
    # Task Consumption
    # ==========================================================================
    watch_namespaces: str = "default"  # Comma-separated
    worker_count: int = 4
    task_record_ttl_hours: float = 24  # Finished task records are kept this long
    kubernetes_namespace: str = "pgo"  # Watched when watch_namespaces is empty

    @property
    def namespaces(self) -> List[str]:
        """Namespaces whose tasks are consumed."""
        namespaces = [ns.strip() for ns in self.watch_namespaces.split(",") if ns.strip()]
        return namespaces or [self.kubernetes_namespace]

    @property
    def service_port(self) -> int:
        return self.console_service_port or self.console_port

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        extra = "ignore"
        case_sensitive = False


@lru_cache()
def get_settings():
    return Settings()
