"""
GMSA Admission Webhook - Enforcement Module

This module exposes the decision engine to the cluster as a Kubernetes
admission webhook.
"""

from .kubernetes.admission_controller import GMSAAdmissionController

__all__ = ['GMSAAdmissionController']
