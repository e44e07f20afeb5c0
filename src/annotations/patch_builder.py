"""
Patch Builder Module

Builds the JSON patch operations that add resolved credential specs to a pod's
annotations, and encodes them for an admission response.
"""

import json
import base64
from typing import Dict, List, Iterable, Tuple, NamedTuple


ANNOTATIONS_PATH_PREFIX = "/metadata/annotations/"


def escape_json_pointer(key: str) -> str:
    """Escape a key for embedding in a JSON pointer (RFC 6901)."""
    # "~" must be escaped first, or the "~" of "~1" would be escaped again
    return key.replace("~", "~0").replace("/", "~1")


def unescape_json_pointer(token: str) -> str:
    """Reverse escape_json_pointer."""
    return token.replace("~1", "/").replace("~0", "~")


class PatchOperation(NamedTuple):
    """A single JSON patch operation."""

    op: str
    path: str
    value: str

    def to_dict(self) -> Dict[str, str]:
        return {'op': self.op, 'path': self.path, 'value': self.value}


class PatchBuilder:
    """Turns resolved annotations into "add" patch operations."""

    def __init__(self, path_prefix: str = ANNOTATIONS_PATH_PREFIX):
        self.path_prefix = path_prefix

    def build_add_ops(self, annotations: Iterable[Tuple[str, str]]) -> List[PatchOperation]:
        """
        Build one "add" operation per (annotation key, value) pair.

        Args:
            annotations: Ordered (key, value) pairs to add

        Returns:
            Patch operations in the same order, empty for an empty input
        """
        return [
            PatchOperation(op="add", path=self.path_prefix + escape_json_pointer(key), value=value)
            for key, value in annotations
        ]


def encode_patch(operations: List[PatchOperation]) -> str:
    """Serialize patch operations as base64-encoded JSON, as admission responses expect."""
    patch_json = json.dumps([operation.to_dict() for operation in operations])
    return base64.b64encode(patch_json.encode('utf-8')).decode('ascii')
