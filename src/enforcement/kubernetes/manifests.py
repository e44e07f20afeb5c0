"""
Webhook Manifests Module

Renders the Kubernetes manifests needed to run the GMSA admission webhook: the
GMSACredentialSpec CRD, RBAC, TLS secret, deployment, service, and the
mutating webhook configuration.
"""

from typing import Dict, List, Any

import yaml

from src.credentials.kube_clients import CREDSPEC_GROUP, CREDSPEC_VERSION, CREDSPEC_PLURAL
from .admission_controller import WEBHOOK_PATH, HEALTH_PATH

WEBHOOK_PORT = 443


def credential_spec_crd() -> Dict[str, Any]:
    """The cluster-scoped GMSACredentialSpec custom resource definition."""
    return {
        "apiVersion": "apiextensions.k8s.io/v1",
        "kind": "CustomResourceDefinition",
        "metadata": {"name": f"{CREDSPEC_PLURAL}.{CREDSPEC_GROUP}"},
        "spec": {
            "group": CREDSPEC_GROUP,
            "scope": "Cluster",
            "names": {
                "plural": CREDSPEC_PLURAL,
                "singular": "gmsacredentialspec",
                "kind": "GMSACredentialSpec",
            },
            "versions": [{
                "name": CREDSPEC_VERSION,
                "served": True,
                "storage": True,
                "schema": {
                    "openAPIV3Schema": {
                        "type": "object",
                        "properties": {
                            "credspec": {
                                "type": "object",
                                "x-kubernetes-preserve-unknown-fields": True,
                            },
                        },
                        "required": ["credspec"],
                    },
                },
            }],
        },
    }


def webhook_manifests(deployment_name: str,
                      namespace: str,
                      image: str,
                      tls_certificate_b64: str,
                      tls_private_key_b64: str,
                      ca_bundle_b64: str) -> List[Dict[str, Any]]:
    """
    Build the manifests for one webhook deployment.

    Args:
        deployment_name: Name shared by the deployment, service, RBAC and webhook objects
        namespace: Namespace to deploy the webhook into
        image: Webhook container image
        tls_certificate_b64: Base64-encoded PEM server certificate
        tls_private_key_b64: Base64-encoded PEM server private key
        ca_bundle_b64: Base64-encoded CA bundle the API server verifies the webhook with

    Returns:
        List of manifest dictionaries, in apply order
    """
    labels = {"app": deployment_name}
    cert_dir = "/tls"

    return [
        credential_spec_crd(),
        {
            "apiVersion": "v1",
            "kind": "ServiceAccount",
            "metadata": {"name": deployment_name, "namespace": namespace, "labels": labels},
        },
        {
            "apiVersion": "rbac.authorization.k8s.io/v1",
            "kind": "ClusterRole",
            "metadata": {"name": f"{deployment_name}-rbac-role", "labels": labels},
            "rules": [
                {
                    "apiGroups": [CREDSPEC_GROUP],
                    "resources": [CREDSPEC_PLURAL],
                    "verbs": ["get"],
                },
                {
                    "apiGroups": ["authorization.k8s.io"],
                    "resources": ["subjectaccessreviews"],
                    "verbs": ["create"],
                },
            ],
        },
        {
            "apiVersion": "rbac.authorization.k8s.io/v1",
            "kind": "ClusterRoleBinding",
            "metadata": {"name": f"{deployment_name}-binding-to-{deployment_name}-rbac-role", "labels": labels},
            "roleRef": {
                "apiGroup": "rbac.authorization.k8s.io",
                "kind": "ClusterRole",
                "name": f"{deployment_name}-rbac-role",
            },
            "subjects": [{"kind": "ServiceAccount", "name": deployment_name, "namespace": namespace}],
        },
        {
            "apiVersion": "v1",
            "kind": "Secret",
            "metadata": {"name": deployment_name, "namespace": namespace, "labels": labels},
            "type": "kubernetes.io/tls",
            "data": {"tls.crt": tls_certificate_b64, "tls.key": tls_private_key_b64},
        },
        {
            "apiVersion": "apps/v1",
            "kind": "Deployment",
            "metadata": {"name": deployment_name, "namespace": namespace, "labels": labels},
            "spec": {
                "replicas": 1,
                "selector": {"matchLabels": labels},
                "template": {
                    "metadata": {"labels": labels},
                    "spec": {
                        "serviceAccountName": deployment_name,
                        "nodeSelector": {"kubernetes.io/os": "linux"},
                        "containers": [{
                            "name": deployment_name,
                            "image": image,
                            "imagePullPolicy": "IfNotPresent",
                            "ports": [{"containerPort": WEBHOOK_PORT, "name": "webhook-api"}],
                            "env": [
                                {"name": "TLS_CRT", "value": f"{cert_dir}/tls.crt"},
                                {"name": "TLS_KEY", "value": f"{cert_dir}/tls.key"},
                                {"name": "PORT", "value": str(WEBHOOK_PORT)},
                            ],
                            "volumeMounts": [{"name": "tls", "mountPath": cert_dir, "readOnly": True}],
                            "livenessProbe": {
                                "httpGet": {"path": HEALTH_PATH, "port": WEBHOOK_PORT, "scheme": "HTTPS"},
                            },
                            "readinessProbe": {
                                "httpGet": {"path": HEALTH_PATH, "port": WEBHOOK_PORT, "scheme": "HTTPS"},
                            },
                        }],
                        "volumes": [{"name": "tls", "secret": {"secretName": deployment_name}}],
                    },
                },
            },
        },
        {
            "apiVersion": "v1",
            "kind": "Service",
            "metadata": {"name": deployment_name, "namespace": namespace, "labels": labels},
            "spec": {
                "selector": labels,
                "ports": [{"port": 443, "targetPort": WEBHOOK_PORT, "protocol": "TCP"}],
            },
        },
        {
            "apiVersion": "admissionregistration.k8s.io/v1",
            "kind": "MutatingWebhookConfiguration",
            "metadata": {"name": deployment_name, "labels": labels},
            "webhooks": [{
                "name": f"{deployment_name}.{namespace}.svc",
                "clientConfig": {
                    "service": {"name": deployment_name, "namespace": namespace, "path": WEBHOOK_PATH},
                    "caBundle": ca_bundle_b64,
                },
                "rules": [{
                    "operations": ["CREATE", "UPDATE"],
                    "apiGroups": [""],
                    "apiVersions": ["*"],
                    "resources": ["pods"],
                }],
                "admissionReviewVersions": ["v1", "v1beta1"],
                "sideEffects": "None",
                "failurePolicy": "Fail",
            }],
        },
    ]


def render_webhook_manifests(deployment_name: str,
                             namespace: str,
                             image: str,
                             tls_certificate_b64: str,
                             tls_private_key_b64: str,
                             ca_bundle_b64: str) -> str:
    """Render webhook_manifests() as a multi-document YAML string ready for kubectl apply."""
    manifests = webhook_manifests(deployment_name, namespace, image,
                                  tls_certificate_b64, tls_private_key_b64, ca_bundle_b64)
    return yaml.safe_dump_all(manifests, sort_keys=False)
