"""
GMSA Admission Webhook - Credentials Module

This module defines the authorization gate and credential store capabilities the
decision engine consumes, with in-memory and Kubernetes-backed implementations.
"""

from .capabilities import (
    AuthorizationGate,
    AuthorizationResult,
    CredentialStore,
    FetchErrorKind,
    FetchResult,
    GMSACredentialSpec,
    StaticAuthorizationGate,
    InMemoryCredentialStore,
)
from .kube_clients import (
    KubernetesAuthorizationGate,
    KubernetesCredentialStore,
    load_kube_config,
    service_account_username,
)

__all__ = [
    'AuthorizationGate',
    'AuthorizationResult',
    'CredentialStore',
    'FetchErrorKind',
    'FetchResult',
    'GMSACredentialSpec',
    'StaticAuthorizationGate',
    'InMemoryCredentialStore',
    'KubernetesAuthorizationGate',
    'KubernetesCredentialStore',
    'load_kube_config',
    'service_account_username',
]
