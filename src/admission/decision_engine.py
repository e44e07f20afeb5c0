"""
Decision Engine Module

Decides whether a pod may be created or updated with respect to its GMSA
credential-spec annotations and, on creation, which credential specs to inline.
"""

import logging
from typing import List, Optional, Tuple

from src.annotations import AnnotationKeyResolver, AnnotationPair, PatchBuilder
from src.credentials import AuthorizationGate, CredentialStore, FetchErrorKind
from .errors import ErrorKind, PodAdmissionError
from .models import AdmissionOutcome, AdmissionRequest, Operation, Pod

DEFAULT_SERVICE_ACCOUNT = "default"
EXPECTED_KIND = "Pod"

FETCH_ERROR_KINDS = {
    FetchErrorKind.NOT_FOUND: ErrorKind.NOT_FOUND,
    FetchErrorKind.MISSING_FIELD: ErrorKind.EXPECTATION_FAILED,
    FetchErrorKind.STORE_ERROR: ErrorKind.INTERNAL_ERROR,
}


class DecisionEngine:
    """Admission decisions for GMSA credential-spec annotations."""

    def __init__(self,
                 authorization_gate: AuthorizationGate,
                 credential_store: CredentialStore,
                 key_resolver: Optional[AnnotationKeyResolver] = None,
                 patch_builder: Optional[PatchBuilder] = None,
                 logger: Optional[logging.Logger] = None):
        """
        Initialize the decision engine.

        Args:
            authorization_gate: Decides who may use which credential spec
            credential_store: Resolves credential spec names to their content
            key_resolver: Resolves the annotation pairs of a pod
            patch_builder: Builds the patch inlining resolved credential specs
            logger: Optional logger for per-request debug output
        """
        self.authorization_gate = authorization_gate
        self.credential_store = credential_store
        self.key_resolver = key_resolver or AnnotationKeyResolver()
        self.patch_builder = patch_builder or PatchBuilder()
        self.logger = logger

    def decide(self, request: AdmissionRequest) -> AdmissionOutcome:
        """
        Decide on an admission request.

        Never raises for bad input or downstream failures: every failure is
        returned as a denied outcome. The request's uid is carried over.
        """
        try:
            outcome = self._dispatch(request)
        except PodAdmissionError as e:
            outcome = AdmissionOutcome.deny(e.kind, e.message, pod=e.pod)

        outcome.uid = request.uid
        if self.logger:
            self.logger.debug("Admission decision for %s: %r", request.uid, outcome)
        return outcome

    def _dispatch(self, request: AdmissionRequest) -> AdmissionOutcome:
        if request.kind != EXPECTED_KIND:
            raise PodAdmissionError(ErrorKind.BAD_REQUEST,
                                    f"expected a Pod object, got a {request.kind or 'nil'}")

        pod = self._decode_pod(request.obj)

        if request.operation == Operation.CREATE:
            return self.validate_create(pod, request.namespace, request.service_account)
        if request.operation == Operation.UPDATE:
            old_pod = self._decode_pod(request.old_obj, "old pod")
            return self.validate_update(pod, old_pod)

        raise PodAdmissionError(ErrorKind.BAD_REQUEST,
                                f"unexpected operation {request.operation}", pod=pod.identity())

    @staticmethod
    def _decode_pod(raw, what: str = "pod") -> Pod:
        if raw is None:
            raise PodAdmissionError(ErrorKind.BAD_REQUEST, f"no {what} object in request")
        try:
            return Pod.decode(raw)
        except ValueError as e:
            raise PodAdmissionError(ErrorKind.BAD_REQUEST, f"unable to unmarshall {what} JSON object: {e}")

    def validate_create(self,
                        pod: Pod,
                        namespace: str = "",
                        service_account: Optional[str] = None) -> AdmissionOutcome:
        """
        Resolve the credential specs a new pod references and build the patch
        inlining them.

        Args:
            pod: The pod being created
            namespace: Request namespace, defaults to the pod's
            service_account: Identity to authorize, defaults to the pod's

        Returns:
            Allowed outcome with one "add" operation per resolved credential spec

        Raises:
            PodAdmissionError: On the first pair that cannot be resolved
        """
        namespace = namespace or pod.metadata.namespace
        service_account = service_account or pod.spec.service_account_name or DEFAULT_SERVICE_ACCOUNT
        annotations = pod.annotations

        resolved: List[Tuple[str, str]] = []
        for pair in self.key_resolver.resolve(pod.container_names):
            # contents may only ever be written by this webhook
            if pair.content_key in annotations:
                raise PodAdmissionError(
                    ErrorKind.FORBIDDEN,
                    f"cannot pre-set a pod's gMSA content annotation (annotation {pair.content_key} present)",
                    pod=pod.identity())

            reference_name = annotations.get(pair.name_key)
            if not reference_name:
                continue

            self._authorize(pod, pair, service_account, namespace, reference_name)
            resolved.append((pair.content_key, self._fetch(pod, reference_name)))

        return AdmissionOutcome.allow(self.patch_builder.build_add_ops(resolved))

    def _authorize(self, pod: Pod, pair: AnnotationPair,
                   service_account: str, namespace: str, reference_name: str):
        try:
            result = self.authorization_gate.is_authorized(service_account, namespace, reference_name)
        except Exception as e:
            allowed, reason = False, f"authorization check failed: {e}"
        else:
            allowed, reason = result.allowed, result.reason

        if not allowed:
            message = (f"service account {service_account} is not authorized to use gMSA cred spec "
                       f"{reference_name} (annotation {pair.name_key})")
            if reason:
                message += f", reason: {reason}"
            raise PodAdmissionError(ErrorKind.FORBIDDEN, message, pod=pod.identity())

    def _fetch(self, pod: Pod, reference_name: str) -> str:
        try:
            result = self.credential_store.fetch(reference_name)
        except Exception as e:
            raise PodAdmissionError(ErrorKind.INTERNAL_ERROR,
                                    f"unable to fetch gMSA cred spec {reference_name}: {e}",
                                    pod=pod.identity())

        if not result.ok:
            message = result.message or f"unable to fetch gMSA cred spec {reference_name}"
            raise PodAdmissionError(FETCH_ERROR_KINDS[result.error], message, pod=pod.identity())
        return result.content

    def validate_update(self, pod: Pod, old_pod: Pod) -> AdmissionOutcome:
        """
        Check that an update leaves every GMSA annotation untouched.

        Pairs are resolved from the containers of both pods; annotations absent
        from both pods compare equal.
        """
        new_annotations = pod.annotations
        old_annotations = old_pod.annotations
        container_names = pod.container_names
        container_names += [name for name in old_pod.container_names if name not in container_names]

        for pair in self.key_resolver.resolve(container_names):
            for key in pair:
                if new_annotations.get(key) != old_annotations.get(key):
                    raise PodAdmissionError(
                        ErrorKind.FORBIDDEN,
                        f"cannot update an existing pod's gMSA annotation (annotation {key} changed)",
                        pod=pod.identity())

        return AdmissionOutcome.allow()

