"""
Tests for the custom resource and Secret models.
"""

from console_operator.schemas import (
    ClusterRecord,
    CredentialSecret,
    ProvisioningFields,
    ProvisioningTask,
)


class TestClusterRecord:

    def test_from_resource(self, cluster):
        assert cluster.name == "acme"
        assert cluster.namespace == "ns1"
        assert cluster.ccp_image_tag == "centos8-13.1-4.6.0"
        assert cluster.admin_enabled is False

    def test_to_resource_keeps_resource_version(self, cluster):
        cluster.labels["admin-enabled"] = "true"

        body = cluster.to_resource()

        assert body["metadata"]["resourceVersion"] == "100"
        assert body["metadata"]["labels"]["admin-enabled"] == "true"
        # the original body is untouched
        assert "admin-enabled" not in cluster.resource["metadata"]["labels"]

    def test_admin_enabled(self):
        record = ClusterRecord(name="acme", namespace="ns1", labels={"admin-enabled": "true"})
        assert record.admin_enabled is True


class TestProvisioningTask:

    def test_from_resource(self, task_factory):
        task = task_factory(task_type="delete-console", cluster_name="acme")

        assert isinstance(task, ProvisioningTask)
        assert task.task_type == "delete-console"
        assert task.cluster_name == "acme"
        assert task.namespace == "ns1"
        assert task.actor == "admin"
        assert task.storage_spec.storage_class == "standard"


class TestProvisioningFields:

    def test_template_values_omit_missing_fields(self):
        fields = ProvisioningFields(name="acme-admin", cluster_name="acme", port=5050)

        assert fields.template_values() == {
            "name": "acme-admin",
            "clusterName": "acme",
            "port": 5050,
            "disableSecurityContext": False,
        }

    def test_password_hidden_from_repr(self):
        fields = ProvisioningFields(init_pass="hunter2")

        assert "hunter2" not in repr(fields)
        assert fields.template_values()["initPass"] == "hunter2"


class TestCredentialSecret:

    def test_decodes_username_and_password(self, secret_factory):
        credential = CredentialSecret.from_v1_secret(
            secret_factory("acme-alice-secret", username="alice", password="s3cret")
        )

        assert credential.username == "alice"
        assert credential.password.get_secret_value() == "s3cret"

    def test_missing_fields(self, secret_factory):
        credential = CredentialSecret.from_v1_secret(secret_factory("acme-alice-secret"))

        assert credential.username is None
        assert credential.password is None
