"""
Kubernetes Clients Module

Kubernetes-backed authorization gate (SubjectAccessReview) and credential store
(GMSACredentialSpec custom resources).
"""

import logging
from typing import Optional

from kubernetes import client, config
from kubernetes.client import ApiException
from pydantic import ValidationError

from .capabilities import (
    AuthorizationGate,
    AuthorizationResult,
    CredentialStore,
    FetchErrorKind,
    FetchResult,
    GMSACredentialSpec,
)

logger = logging.getLogger(__name__)

CREDSPEC_GROUP = "windows.k8s.io"
CREDSPEC_VERSION = "v1alpha1"
CREDSPEC_PLURAL = "gmsacredentialspecs"
CREDSPEC_USE_VERB = "use"


def service_account_username(namespace: str, service_account: str) -> str:
    """The user name the API server authenticates a service account as."""
    return f"system:serviceaccount:{namespace}:{service_account}"


def load_kube_config(kubeconfig: Optional[str] = None) -> client.ApiClient:
    """
    Load cluster credentials and return an API client.

    Tries the in-cluster configuration first unless an explicit kubeconfig
    is given, then falls back to the local kubeconfig.
    """
    if kubeconfig:
        config.load_kube_config(config_file=kubeconfig)
        logger.info("Loaded kubeconfig from %s", kubeconfig)
    else:
        try:
            config.load_incluster_config()
            logger.info("Loaded in-cluster Kubernetes config")
        except config.ConfigException:
            config.load_kube_config()
            logger.info("Loaded kubeconfig")
    return client.ApiClient()


class KubernetesAuthorizationGate(AuthorizationGate):
    """Checks "use" permission on GMSACredentialSpecs with SubjectAccessReviews."""

    def __init__(self, api_client: Optional[client.ApiClient] = None):
        self.authorization_api = client.AuthorizationV1Api(api_client)

    def is_authorized(self, service_account: str, namespace: str, reference_name: str) -> AuthorizationResult:
        username = service_account_username(namespace, service_account)
        review = client.V1SubjectAccessReview(
            spec=client.V1SubjectAccessReviewSpec(
                user=username,
                resource_attributes=client.V1ResourceAttributes(
                    group=CREDSPEC_GROUP,
                    resource=CREDSPEC_PLURAL,
                    verb=CREDSPEC_USE_VERB,
                    name=reference_name,
                ),
            )
        )

        try:
            response = self.authorization_api.create_subject_access_review(body=review)
        except ApiException as e:
            logger.warning("SubjectAccessReview for %s on %s failed: %s", username, reference_name, e)
            return AuthorizationResult(False, f"unable to check authorization: {e.status} {e.reason}")
        except Exception as e:
            logger.warning("SubjectAccessReview for %s on %s failed: %s", username, reference_name, e)
            return AuthorizationResult(False, f"unable to check authorization: {e}")

        status = response.status
        if status is None:
            return AuthorizationResult(False, "empty SubjectAccessReview status")
        return AuthorizationResult(bool(status.allowed), status.reason or "")


class KubernetesCredentialStore(CredentialStore):
    """Reads cluster-scoped GMSACredentialSpec custom resources."""

    def __init__(self, api_client: Optional[client.ApiClient] = None):
        self.custom_objects_api = client.CustomObjectsApi(api_client)

    def fetch(self, reference_name: str) -> FetchResult:
        try:
            resource = self.custom_objects_api.get_cluster_custom_object(
                CREDSPEC_GROUP, CREDSPEC_VERSION, CREDSPEC_PLURAL, reference_name
            )
        except ApiException as e:
            if e.status == 404:
                return FetchResult.failed(FetchErrorKind.NOT_FOUND,
                                          f"cred spec {reference_name} does not exist")
            logger.warning("Failed to retrieve cred spec %s: %s", reference_name, e)
            return FetchResult.failed(FetchErrorKind.STORE_ERROR,
                                      f"unable to retrieve cred spec {reference_name}: {e.status} {e.reason}")
        except Exception as e:
            logger.warning("Failed to retrieve cred spec %s: %s", reference_name, e)
            return FetchResult.failed(FetchErrorKind.STORE_ERROR,
                                      f"unable to retrieve cred spec {reference_name}: {e}")

        try:
            spec = GMSACredentialSpec.model_validate(resource)
        except ValidationError as e:
            return FetchResult.failed(FetchErrorKind.STORE_ERROR,
                                      f"unable to decode cred spec {reference_name}: {e}")

        content = spec.content()
        if content is None:
            return FetchResult.failed(FetchErrorKind.MISSING_FIELD,
                                      f"cred spec {reference_name} does not contain a 'credspec' key")
        return FetchResult.found(content)
