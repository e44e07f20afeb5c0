"""
GMSA Admission Webhook - Annotations Module

This module resolves the GMSA credential-spec annotation keys carried by a pod
and builds the JSON patch operations that inline credential specs into them.
"""

from .key_resolver import AnnotationPair, AnnotationKeyResolver
from .patch_builder import (
    PatchOperation,
    PatchBuilder,
    escape_json_pointer,
    unescape_json_pointer,
    encode_patch,
)

__all__ = [
    'AnnotationPair',
    'AnnotationKeyResolver',
    'PatchOperation',
    'PatchBuilder',
    'escape_json_pointer',
    'unescape_json_pointer',
    'encode_patch',
]
