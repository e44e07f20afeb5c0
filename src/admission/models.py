"""
Admission Models Module

Typed records for the pods under admission, the admission request handed to the
decision engine, and the outcome it produces.
"""

import json
from enum import Enum
from typing import Dict, List, Any, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator

from src.annotations import PatchOperation, encode_patch
from .errors import ErrorKind


class Container(BaseModel):
    model_config = ConfigDict(extra='allow')

    name: str


class ObjectMeta(BaseModel):
    model_config = ConfigDict(extra='allow', populate_by_name=True)

    name: str = ""
    generate_name: str = Field(default="", alias="generateName")
    namespace: str = ""
    annotations: Dict[str, str] = Field(default_factory=dict)

    @field_validator("annotations", mode="before")
    @classmethod
    def annotations_default(cls, value):
        return {} if value is None else value


class PodSpec(BaseModel):
    model_config = ConfigDict(extra='allow', populate_by_name=True)

    service_account_name: Optional[str] = Field(default=None, alias="serviceAccountName")
    containers: List[Container] = Field(default_factory=list)

    @field_validator("containers", mode="before")
    @classmethod
    def containers_default(cls, value):
        return [] if value is None else value


class Pod(BaseModel):
    """The subset of a pod object the decision engine looks at."""

    model_config = ConfigDict(extra='allow')

    metadata: ObjectMeta = Field(default_factory=ObjectMeta)
    spec: PodSpec = Field(default_factory=PodSpec)

    @classmethod
    def decode(cls, raw: Union[bytes, str, Dict[str, Any]]) -> 'Pod':
        """
        Decode a pod from raw JSON or an already-parsed mapping.

        Raises:
            ValueError: If the object is not valid JSON or not a pod
                (pydantic's ValidationError is a ValueError)
        """
        if isinstance(raw, (bytes, str)):
            return cls.model_validate_json(raw)
        return cls.model_validate(raw)

    @property
    def annotations(self) -> Dict[str, str]:
        return self.metadata.annotations

    @property
    def container_names(self) -> List[str]:
        return [container.name for container in self.spec.containers]

    def identity(self) -> str:
        """Human-readable identity for log and denial messages."""
        name = self.metadata.name or f"{self.metadata.generate_name}*"
        if self.metadata.namespace:
            return f"{self.metadata.namespace}/{name}"
        return name


class Operation(str, Enum):
    CREATE = "CREATE"
    UPDATE = "UPDATE"
    DELETE = "DELETE"
    CONNECT = "CONNECT"


class AdmissionRequest:
    """A single admission request, stripped of its transport envelope."""

    def __init__(self,
                 operation: str,
                 obj: Union[bytes, str, Dict[str, Any], None],
                 kind: str = "Pod",
                 namespace: str = "",
                 old_obj: Union[bytes, str, Dict[str, Any], None] = None,
                 service_account: Optional[str] = None,
                 uid: Optional[str] = None):
        self.operation = operation
        self.obj = obj
        self.kind = kind
        self.namespace = namespace
        self.old_obj = old_obj
        self.service_account = service_account
        self.uid = uid

    @classmethod
    def from_review(cls, review_request: Dict[str, Any]) -> 'AdmissionRequest':
        """Build a request from the "request" member of an AdmissionReview."""
        kind = review_request.get("kind") or {}
        return cls(
            operation=review_request.get("operation", ""),
            obj=review_request.get("object"),
            kind=kind.get("kind", "") if isinstance(kind, dict) else str(kind),
            namespace=review_request.get("namespace", ""),
            old_obj=review_request.get("oldObject"),
            uid=review_request.get("uid"),
        )


class AdmissionOutcome:
    """Allow/deny decision for one admission request, with the patch to apply."""

    def __init__(self,
                 allowed: bool,
                 patch_operations: Optional[List[PatchOperation]] = None,
                 denial_reason: Optional[str] = None,
                 denial_code: Optional[ErrorKind] = None,
                 uid: Optional[str] = None,
                 pod: Optional[str] = None):
        self.allowed = allowed
        self.patch_operations = list(patch_operations or [])
        self.denial_reason = denial_reason
        self.denial_code = denial_code
        self.uid = uid
        self.pod = pod

    @classmethod
    def allow(cls, patch_operations: Optional[List[PatchOperation]] = None,
              uid: Optional[str] = None) -> 'AdmissionOutcome':
        return cls(True, patch_operations=patch_operations, uid=uid)

    @classmethod
    def deny(cls, kind: ErrorKind, reason: str,
             uid: Optional[str] = None, pod: Optional[str] = None) -> 'AdmissionOutcome':
        return cls(False, denial_reason=reason, denial_code=kind, uid=uid, pod=pod)

    def to_response(self) -> Dict[str, Any]:
        """Map the outcome to an AdmissionResponse. The patch is omitted when empty."""
        response = {
            "uid": self.uid,
            "allowed": self.allowed,
        }
        if self.allowed:
            if self.patch_operations:
                response["patchType"] = "JSONPatch"
                response["patch"] = encode_patch(self.patch_operations)
        else:
            response["status"] = {
                "code": self.denial_code.code if self.denial_code else ErrorKind.FORBIDDEN.code,
                "message": self.denial_reason or "",
            }
        return response

    def to_dict(self) -> Dict[str, Any]:
        return {
            'uid': self.uid,
            'allowed': self.allowed,
            'patch_operations': [operation.to_dict() for operation in self.patch_operations],
            'denial_reason': self.denial_reason,
            'denial_code': self.denial_code.name if self.denial_code else None,
            'pod': self.pod
        }

    def __repr__(self) -> str:
        return f"AdmissionOutcome({json.dumps(self.to_dict())})"
