"""
GMSA Admission Webhook - Admission Module

This module decides on pod admission requests: it authorizes and inlines the
GMSA credential specs new pods reference, and keeps them immutable on update.
"""

from .errors import ErrorKind, PodAdmissionError, ConfigurationError
from .models import Pod, AdmissionRequest, AdmissionOutcome, Operation
from .decision_engine import DecisionEngine

__all__ = [
    'ErrorKind',
    'PodAdmissionError',
    'ConfigurationError',
    'Pod',
    'AdmissionRequest',
    'AdmissionOutcome',
    'Operation',
    'DecisionEngine',
]
