"""
Kubernetes Enforcement Module

Provides the admission webhook that inlines GMSA credential specs into pods,
its configuration, and the manifests to deploy it.
"""

from .admission_controller import GMSAAdmissionController, create_admission_controller
from .config import WebhookConfig, configure_logging
from .manifests import render_webhook_manifests, webhook_manifests

__all__ = [
    'GMSAAdmissionController',
    'create_admission_controller',
    'WebhookConfig',
    'configure_logging',
    'render_webhook_manifests',
    'webhook_manifests',
]
