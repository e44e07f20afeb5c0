"""
Credential Capabilities Module

Abstract authorization gate and credential store interfaces, their result
records, and in-memory implementations of both.
"""

import json
from abc import ABC, abstractmethod
from enum import Enum
from typing import Dict, Any, Optional, Iterable, Tuple, Union

from pydantic import BaseModel, ConfigDict


class AuthorizationResult:
    """Result of an authorization check."""

    def __init__(self, allowed: bool, reason: str = ""):
        self.allowed = allowed
        self.reason = reason

    def to_dict(self) -> Dict[str, Any]:
        return {
            'allowed': self.allowed,
            'reason': self.reason
        }


class FetchErrorKind(Enum):
    """Why a credential spec could not be fetched."""

    NOT_FOUND = "not_found"
    MISSING_FIELD = "missing_field"
    STORE_ERROR = "store_error"


class FetchResult:
    """Result of a credential spec fetch: either content or an error kind."""

    def __init__(self,
                 content: Optional[str] = None,
                 error: Optional[FetchErrorKind] = None,
                 message: str = ""):
        if (content is None) == (error is None):
            raise ValueError("exactly one of content or error must be set")
        self.content = content
        self.error = error
        self.message = message

    @classmethod
    def found(cls, content: str) -> 'FetchResult':
        return cls(content=content)

    @classmethod
    def failed(cls, error: FetchErrorKind, message: str = "") -> 'FetchResult':
        return cls(error=error, message=message)

    @property
    def ok(self) -> bool:
        return self.error is None

    def to_dict(self) -> Dict[str, Any]:
        return {
            'content': self.content,
            'error': self.error.value if self.error else None,
            'message': self.message
        }


class GMSACredentialSpec(BaseModel):
    """A GMSACredentialSpec custom resource as stored in the cluster."""

    model_config = ConfigDict(extra='allow')

    credspec: Optional[Union[str, Dict[str, Any]]] = None

    def content(self) -> Optional[str]:
        """The credential spec as a string, or None if the resource has none."""
        if self.credspec is None:
            return None
        if isinstance(self.credspec, str):
            return self.credspec
        return json.dumps(self.credspec, sort_keys=True, separators=(',', ':'))


class AuthorizationGate(ABC):
    """Decides whether a service account may use a credential spec."""

    @abstractmethod
    def is_authorized(self, service_account: str, namespace: str, reference_name: str) -> AuthorizationResult:
        """Check whether service_account in namespace may use reference_name."""
        pass


class CredentialStore(ABC):
    """Resolves credential spec names to their content."""

    @abstractmethod
    def fetch(self, reference_name: str) -> FetchResult:
        """Fetch the content of the credential spec named reference_name."""
        pass


class StaticAuthorizationGate(AuthorizationGate):
    """Authorization gate backed by a fixed set of grants."""

    def __init__(self,
                 grants: Iterable[Tuple[str, str, str]] = (),
                 denial_reasons: Optional[Dict[Tuple[str, str, str], str]] = None):
        """
        Initialize the gate.

        Args:
            grants: (service_account, namespace, reference_name) triples to allow
            denial_reasons: Reasons reported for specific denied triples
        """
        self.grants = set(grants)
        self.denial_reasons = dict(denial_reasons or {})

    def grant(self, service_account: str, namespace: str, reference_name: str):
        self.grants.add((service_account, namespace, reference_name))

    def is_authorized(self, service_account: str, namespace: str, reference_name: str) -> AuthorizationResult:
        triple = (service_account, namespace, reference_name)
        if triple in self.grants:
            return AuthorizationResult(True)
        return AuthorizationResult(False, self.denial_reasons.get(triple, ""))


class InMemoryCredentialStore(CredentialStore):
    """Credential store backed by a dictionary; a None value is an entry without content."""

    def __init__(self, specs: Optional[Dict[str, Optional[str]]] = None):
        self.specs = dict(specs or {})

    def put(self, reference_name: str, content: Optional[str]):
        self.specs[reference_name] = content

    def fetch(self, reference_name: str) -> FetchResult:
        if reference_name not in self.specs:
            return FetchResult.failed(FetchErrorKind.NOT_FOUND, f"credential spec {reference_name} not found")
        content = self.specs[reference_name]
        if content is None:
            return FetchResult.failed(FetchErrorKind.MISSING_FIELD,
                                      f"credential spec {reference_name} has no content")
        return FetchResult.found(content)
