"""
Unit tests for ResourceTemplater and its render strategies.
"""

import logging

import pytest
from kubernetes import client

from console_operator.errors import TemplateError
from console_operator.schemas import ProvisioningFields
from console_operator.services.templater import (
    DEPLOYMENT,
    SERVICE,
    BuilderStrategy,
    ResourceTemplater,
    TemplateFileStrategy,
)


def deployment_fields(**overrides):
    values = dict(
        name="acme-admin",
        cluster_name="acme",
        image_prefix="registry.example.com/crunchydata",
        image_tag="centos8-13.1-4.6.0",
        port=5050,
        init_user="pgadminsetup",
        init_pass="s3cr3t-throwaway",
        volume_claim_name="acme-admin",
    )
    values.update(overrides)
    return ProvisioningFields(**values)


def service_fields(**overrides):
    values = dict(name="acme-admin", cluster_name="acme", port=5050)
    values.update(overrides)
    return ProvisioningFields(**values)


DEPLOYMENT_TEMPLATE = """\
apiVersion: apps/v1
kind: Deployment
metadata:
  name: ${name}
  labels:
    pg-cluster: ${clusterName}
spec:
  replicas: 1
  template:
    spec:
      containers:
        - name: pgadmin
          image: ${imagePrefix}/crunchy-pgadmin4:${imageTag}
          env:
            - name: PGADMIN_SETUP_EMAIL
              value: ${initUser}
            - name: PGADMIN_SETUP_PASSWORD
              value: ${initPass}
      volumes:
        - name: pgadmin-datadir
          persistentVolumeClaim:
            claimName: ${volumeClaimName}
"""


@pytest.fixture
def builder_templater():
    return ResourceTemplater(strategy=BuilderStrategy("crunchy-pgadmin4"), debug=False)


class TestResourceTemplater:

    def test_unknown_kind(self, builder_templater):
        with pytest.raises(TemplateError, match="Unknown resource kind"):
            builder_templater.render("statefulset", deployment_fields())

    def test_missing_required_field(self, builder_templater):
        with pytest.raises(TemplateError, match="initPass"):
            builder_templater.render(DEPLOYMENT, deployment_fields(init_pass=None))

    def test_empty_required_field(self, builder_templater):
        with pytest.raises(TemplateError, match="name"):
            builder_templater.render(SERVICE, service_fields(name=""))

    def test_service_ignores_deployment_only_fields(self, builder_templater):
        service = builder_templater.render(SERVICE, service_fields())

        assert isinstance(service, client.V1Service)
        assert service.metadata.name == "acme-admin"

    def test_renders_deployment(self, builder_templater):
        deployment = builder_templater.render(DEPLOYMENT, deployment_fields())

        assert isinstance(deployment, client.V1Deployment)
        container = deployment.spec.template.spec.containers[0]
        assert container.image == "registry.example.com/crunchydata/crunchy-pgadmin4:centos8-13.1-4.6.0"

    def test_strategy_type_error_is_wrapped(self, builder_templater):
        fields = service_fields().model_copy(update={"port": "not-a-port"})

        with pytest.raises(TemplateError, match="Failed to render service"):
            builder_templater.render(SERVICE, fields)

    def test_debug_dump_masks_password(self, caplog):
        templater = ResourceTemplater(strategy=BuilderStrategy("crunchy-pgadmin4"), debug=True)

        with caplog.at_level(logging.DEBUG, logger="console_operator.services.templater"):
            templater.render(DEPLOYMENT, deployment_fields())

        assert "Rendered deployment" in caplog.text
        assert "s3cr3t-throwaway" not in caplog.text
        assert "********" in caplog.text


class TestBuilderStrategy:

    def test_image_override_wins(self):
        templater = ResourceTemplater(
            strategy=BuilderStrategy("crunchy-pgadmin4", image_override="mirror.local/pgadmin:pinned"),
            debug=False,
        )

        deployment = templater.render(DEPLOYMENT, deployment_fields())

        assert deployment.spec.template.spec.containers[0].image == "mirror.local/pgadmin:pinned"

    def test_security_context_flag(self, builder_templater):
        deployment = builder_templater.render(DEPLOYMENT, deployment_fields(disable_security_context=True))

        assert deployment.spec.template.spec.security_context is None


class TestTemplateFileStrategy:

    def test_renders_template_file(self, tmp_path):
        (tmp_path / "deployment.yaml").write_text(DEPLOYMENT_TEMPLATE)
        templater = ResourceTemplater(strategy=TemplateFileStrategy(str(tmp_path)), debug=False)

        document = templater.render(DEPLOYMENT, deployment_fields())

        assert document["kind"] == "Deployment"
        assert document["metadata"]["name"] == "acme-admin"
        container = document["spec"]["template"]["spec"]["containers"][0]
        assert container["image"] == "registry.example.com/crunchydata/crunchy-pgadmin4:centos8-13.1-4.6.0"
        assert container["env"][1]["value"] == "s3cr3t-throwaway"

    def test_placeholder_without_field(self, tmp_path):
        (tmp_path / "service.yaml").write_text(
            "kind: Service\nmetadata:\n  name: ${name}\n  annotations:\n    owner: ${owner}\n"
        )
        templater = ResourceTemplater(strategy=TemplateFileStrategy(str(tmp_path)), debug=False)

        with pytest.raises(TemplateError, match="missing field"):
            templater.render(SERVICE, service_fields())

    def test_missing_template_file(self, tmp_path):
        templater = ResourceTemplater(strategy=TemplateFileStrategy(str(tmp_path)), debug=False)

        with pytest.raises(TemplateError, match="cannot read service template"):
            templater.render(SERVICE, service_fields())

    def test_invalid_yaml(self, tmp_path):
        (tmp_path / "service.yaml").write_text("kind: Service\nmetadata: [${name}\n")
        templater = ResourceTemplater(strategy=TemplateFileStrategy(str(tmp_path)), debug=False)

        with pytest.raises(TemplateError, match="valid YAML"):
            templater.render(SERVICE, service_fields())

    def test_wrong_kind(self, tmp_path):
        (tmp_path / "service.yaml").write_text("kind: ConfigMap\nmetadata:\n  name: ${name}\n")
        templater = ResourceTemplater(strategy=TemplateFileStrategy(str(tmp_path)), debug=False)

        with pytest.raises(TemplateError, match="single Service"):
            templater.render(SERVICE, service_fields())

    def test_boolean_fields_render_lowercase(self, tmp_path):
        (tmp_path / "deployment.yaml").write_text(
            "kind: Deployment\nmetadata:\n  name: ${name}\n"
            "  annotations:\n    disable-fsgroup: \"${disableSecurityContext}\"\n"
            "  labels:\n    claim: ${volumeClaimName}\n"
        )
        templater = ResourceTemplater(strategy=TemplateFileStrategy(str(tmp_path)), debug=False)

        document = templater.render(DEPLOYMENT, deployment_fields(disable_security_context=True))

        assert document["metadata"]["annotations"]["disable-fsgroup"] == "true"
