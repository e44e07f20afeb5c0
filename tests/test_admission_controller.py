"""
Test suite for the Kubernetes admission webhook.
"""

import os
import json
import base64
import tempfile
from unittest.mock import MagicMock, patch

import pytest
import yaml

from src.admission import ConfigurationError, DecisionEngine
from src.credentials import (
    InMemoryCredentialStore,
    KubernetesAuthorizationGate,
    KubernetesCredentialStore,
    StaticAuthorizationGate,
)
from src.enforcement.kubernetes import (
    GMSAAdmissionController,
    WebhookConfig,
    create_admission_controller,
    render_webhook_manifests,
)
from src.enforcement.kubernetes import admission_controller


NAME_KEY = "nginx0.container.alpha.windows.kubernetes.io/gmsa-credential-spec-name"
CONTENT_PATH = "/metadata/annotations/nginx0.container.alpha.windows.kubernetes.io~1gmsa-credential-spec"


def make_review(operation="CREATE", annotations=None, old_annotations=None, kind="Pod",
                api_version="admission.k8s.io/v1"):
    def pod(pod_annotations):
        return {
            "apiVersion": "v1",
            "kind": "Pod",
            "metadata": {"name": "my-pod", "namespace": "default", "annotations": pod_annotations or {}},
            "spec": {"containers": [{"name": "nginx0", "image": "nginx"}]},
        }

    review_request = {
        "uid": "705ab4f5-6393-11e8-b7cc-42010a800002",
        "kind": {"group": "", "version": "v1", "kind": kind},
        "namespace": "default",
        "operation": operation,
        "object": pod(annotations),
    }
    if operation == "UPDATE":
        review_request["oldObject"] = pod(old_annotations)
    return {"apiVersion": api_version, "kind": "AdmissionReview", "request": review_request}


class TestGMSAAdmissionController:
    """Test cases for the webhook endpoints."""

    def setup_method(self):
        gate = StaticAuthorizationGate([("default", "default", "spec1")])
        store = InMemoryCredentialStore({"spec1": "<spec-xml/>"})
        self.controller = GMSAAdmissionController(DecisionEngine(gate, store))
        self.client = self.controller.app.test_client()

    def post_review(self, review):
        response = self.client.post("/validate-mutate", json=review)
        assert response.status_code == 200
        return response.get_json()

    def test_health_check(self):
        response = self.client.get("/health")

        assert response.status_code == 200
        assert response.get_json()["status"] == "healthy"

    def test_unknown_path(self):
        assert self.client.post("/validate", json={}).status_code == 404

    def test_create_is_patched(self):
        """Test the credential spec is inlined through a base64 JSON patch."""
        result = self.post_review(make_review(annotations={NAME_KEY: "spec1"}))

        assert result["apiVersion"] == "admission.k8s.io/v1"
        assert result["kind"] == "AdmissionReview"
        response = result["response"]
        assert response["uid"] == "705ab4f5-6393-11e8-b7cc-42010a800002"
        assert response["allowed"] is True
        assert response["patchType"] == "JSONPatch"
        assert json.loads(base64.b64decode(response["patch"])) == [
            {"op": "add", "path": CONTENT_PATH, "value": "<spec-xml/>"}
        ]

    def test_create_without_annotations_has_no_patch(self):
        response = self.post_review(make_review())["response"]

        assert response["allowed"] is True
        assert "patch" not in response
        assert "patchType" not in response

    def test_missing_spec_is_denied(self):
        response = self.post_review(make_review(annotations={NAME_KEY: "spec-missing"}))["response"]

        assert response["allowed"] is False
        assert response["uid"] == "705ab4f5-6393-11e8-b7cc-42010a800002"
        # not authorized to use a spec that was never granted
        assert response["status"]["code"] == 403

    def test_update_changing_reference_is_denied(self):
        review = make_review("UPDATE", annotations={NAME_KEY: "spec2"}, old_annotations={NAME_KEY: "spec1"})

        response = self.post_review(review)["response"]

        assert response["allowed"] is False
        assert response["status"]["code"] == 403
        assert NAME_KEY in response["status"]["message"]

    def test_wrong_kind(self):
        response = self.post_review(make_review(kind="Deployment"))["response"]

        assert response["allowed"] is False
        assert response["status"]["code"] == 400

    def test_api_version_is_echoed(self):
        result = self.post_review(make_review(api_version="admission.k8s.io/v1beta1"))

        assert result["apiVersion"] == "admission.k8s.io/v1beta1"

    def test_wrong_content_type(self):
        response = self.client.post("/validate-mutate", data="{}", content_type="text/plain")

        body = response.get_json()["response"]
        assert body["allowed"] is False
        assert body["status"]["code"] == 415

    def test_empty_body(self):
        response = self.client.post("/validate-mutate", data=b"", content_type="application/json")

        assert response.get_json()["response"]["status"]["code"] == 400

    def test_invalid_json(self):
        response = self.client.post("/validate-mutate", data=b"{not json", content_type="application/json")

        assert response.get_json()["response"]["status"]["code"] == 400

    def test_missing_request(self):
        response = self.post_review({"apiVersion": "admission.k8s.io/v1", "kind": "AdmissionReview"})

        assert response["response"]["allowed"] is False
        assert response["response"]["status"]["code"] == 400
        assert "request" in response["response"]["status"]["message"]

    def test_create_admission_controller(self):
        config = WebhookConfig("/tls/tls.crt", "/tls/tls.key")

        with patch.object(admission_controller, "load_kube_config", return_value=MagicMock()):
            controller = create_admission_controller(config)

        assert isinstance(controller.engine.authorization_gate, KubernetesAuthorizationGate)
        assert isinstance(controller.engine.credential_store, KubernetesCredentialStore)

    def test_main_without_tls_exits(self, monkeypatch):
        for env_var in ("TLS_CRT", "TLS_KEY", "WEBHOOK_CONFIG_FILE"):
            monkeypatch.delenv(env_var, raising=False)

        with pytest.raises(SystemExit):
            admission_controller.main()


class TestWebhookConfig:
    """Test cases for WebhookConfig loading."""

    def setup_method(self):
        self.temp_dir = tempfile.mkdtemp()

    def teardown_method(self):
        import shutil
        shutil.rmtree(self.temp_dir, ignore_errors=True)

    def write_config(self, content):
        path = os.path.join(self.temp_dir, "webhook.yml")
        with open(path, 'w') as f:
            f.write(content)
        return path

    def test_from_environment(self):
        config = WebhookConfig.load({"TLS_CRT": "/tls/tls.crt", "TLS_KEY": "/tls/tls.key", "PORT": "8443"})

        assert config.tls_cert_path == "/tls/tls.crt"
        assert config.tls_key_path == "/tls/tls.key"
        assert config.port == 8443
        assert config.host == "0.0.0.0"
        assert config.log_level == "info"

    def test_tls_required(self):
        with pytest.raises(ConfigurationError):
            WebhookConfig.load({"TLS_CRT": "/tls/tls.crt"})

    def test_invalid_port(self):
        with pytest.raises(ConfigurationError):
            WebhookConfig.load({"TLS_CRT": "a", "TLS_KEY": "b", "PORT": "https"})
        with pytest.raises(ConfigurationError):
            WebhookConfig.load({"TLS_CRT": "a", "TLS_KEY": "b", "PORT": "70000"})

    def test_invalid_log_level(self):
        with pytest.raises(ConfigurationError):
            WebhookConfig.load({"TLS_CRT": "a", "TLS_KEY": "b", "LOG_LEVEL": "chatty"})

    def test_yaml_file_overridden_by_environment(self):
        path = self.write_config(
            "tls_cert_path: /etc/tls/tls.crt\n"
            "tls_key_path: /etc/tls/tls.key\n"
            "port: 9443\n"
            "log_level: debug\n"
        )

        config = WebhookConfig.load({"WEBHOOK_CONFIG_FILE": path, "LOG_LEVEL": "warning"})

        assert config.tls_cert_path == "/etc/tls/tls.crt"
        assert config.port == 9443
        assert config.log_level == "warning"

    def test_unknown_yaml_key(self):
        path = self.write_config("tls_cert_path: a\ntls_key_path: b\nstrict_mode: true\n")

        with pytest.raises(ConfigurationError):
            WebhookConfig.load({"WEBHOOK_CONFIG_FILE": path})

    def test_missing_yaml_file(self):
        with pytest.raises(ConfigurationError):
            WebhookConfig.load({"WEBHOOK_CONFIG_FILE": os.path.join(self.temp_dir, "missing.yml")})


class TestWebhookManifests:
    """Test cases for deployment manifest rendering."""

    def setup_method(self):
        rendered = render_webhook_manifests(
            deployment_name="gmsa-webhook",
            namespace="kube-system",
            image="gmsa-webhook:latest",
            tls_certificate_b64="Y2VydA==",
            tls_private_key_b64="a2V5",
            ca_bundle_b64="Y2E=",
        )
        self.manifests = list(yaml.safe_load_all(rendered))
        self.by_kind = {m["kind"]: m for m in self.manifests}

    def test_all_objects_rendered(self):
        assert [m["kind"] for m in self.manifests] == [
            "CustomResourceDefinition",
            "ServiceAccount",
            "ClusterRole",
            "ClusterRoleBinding",
            "Secret",
            "Deployment",
            "Service",
            "MutatingWebhookConfiguration",
        ]

    def test_crd(self):
        crd = self.by_kind["CustomResourceDefinition"]

        assert crd["metadata"]["name"] == "gmsacredentialspecs.windows.k8s.io"
        assert crd["spec"]["scope"] == "Cluster"

    def test_webhook_configuration(self):
        webhook = self.by_kind["MutatingWebhookConfiguration"]["webhooks"][0]

        assert webhook["clientConfig"]["service"]["path"] == "/validate-mutate"
        assert webhook["clientConfig"]["caBundle"] == "Y2E="
        assert webhook["rules"][0]["operations"] == ["CREATE", "UPDATE"]
        assert webhook["rules"][0]["resources"] == ["pods"]

    def test_deployment_tls_settings(self):
        container = self.by_kind["Deployment"]["spec"]["template"]["spec"]["containers"][0]
        env = {item["name"]: item["value"] for item in container["env"]}

        assert env["TLS_CRT"] == "/tls/tls.crt"
        assert env["TLS_KEY"] == "/tls/tls.key"
        assert container["image"] == "gmsa-webhook:latest"
        assert self.by_kind["Secret"]["data"] == {"tls.crt": "Y2VydA==", "tls.key": "a2V5"}
