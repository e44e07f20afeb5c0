#!/usr/bin/env python3
"""
Kubernetes Admission Controller for GMSA Credential Specs

Mutating admission webhook that inlines the GMSA credential specs pods refer to
by name, and refuses pods that try to forge or alter them.
"""

import json
import logging
from datetime import datetime, timezone
from typing import Dict, Any, Optional

from flask import Flask, request, jsonify

from src.admission import AdmissionRequest, AdmissionOutcome, ConfigurationError, DecisionEngine, ErrorKind
from src.credentials import KubernetesAuthorizationGate, KubernetesCredentialStore, load_kube_config
from .config import WebhookConfig, configure_logging

logger = logging.getLogger(__name__)

WEBHOOK_PATH = "/validate-mutate"
HEALTH_PATH = "/health"
DEFAULT_API_VERSION = "admission.k8s.io/v1"
UNSUPPORTED_MEDIA_TYPE = 415


class GMSAAdmissionController:
    """Kubernetes MutatingAdmissionWebhook for GMSA credential specs."""

    def __init__(self, engine: DecisionEngine):
        """
        Initialize the admission controller.

        Args:
            engine: Decision engine handling the decoded admission requests
        """
        self.engine = engine

        self.app = Flask(__name__)
        self.app.add_url_rule(HEALTH_PATH, 'health', self.health_check, methods=['GET'])
        self.app.add_url_rule(WEBHOOK_PATH, 'validate_mutate', self.validate_mutate, methods=['POST'])

    def health_check(self):
        """Health check endpoint."""
        return jsonify({
            "status": "healthy",
            "timestamp": datetime.now(timezone.utc).isoformat()
        })

    def validate_mutate(self):
        """Validating and mutating webhook endpoint."""
        api_version = DEFAULT_API_VERSION

        if request.mimetype != "application/json":
            return self._deny("expected JSON content-type header", UNSUPPORTED_MEDIA_TYPE, api_version)

        body = request.get_data()
        if not body:
            return self._deny("no request body", ErrorKind.BAD_REQUEST.code, api_version)

        logger.debug("Handling request: %s", body)

        try:
            admission_review = json.loads(body)
        except ValueError as e:
            return self._deny(f"unable to unmarshall JSON body as an admission review: {e}",
                              ErrorKind.BAD_REQUEST.code, api_version)

        if isinstance(admission_review, dict):
            api_version = admission_review.get("apiVersion") or DEFAULT_API_VERSION
            review_request = admission_review.get("request")
        else:
            review_request = None

        if not isinstance(review_request, dict):
            return self._deny("no 'request' field in JSON body", ErrorKind.BAD_REQUEST.code, api_version)

        outcome = self.engine.decide(AdmissionRequest.from_review(review_request))
        if not outcome.allowed:
            self._log_denial(outcome)

        review = self._create_admission_review(outcome.to_response(), api_version)
        logger.debug("Sending response: %s", review)
        return jsonify(review)

    def _deny(self, message: str, code: int, api_version: str):
        """Deny a request that never reached the decision engine."""
        logger.info("Refusing to admit with code %s: %s", code, message)
        return jsonify(self._create_admission_review(
            self._create_admission_response(False, message, code), api_version))

    def _log_denial(self, outcome: AdmissionOutcome):
        message = "Refusing to admit"
        if outcome.pod:
            message += f" pod {outcome.pod}"
        logger.info("%s with code %s: %s", message, outcome.denial_code.code, outcome.denial_reason)

    def _create_admission_response(self, allowed: bool, message: str, code: int,
                                   uid: Optional[str] = None) -> Dict[str, Any]:
        return {
            "uid": uid,
            "allowed": allowed,
            "status": {
                "code": code,
                "message": message
            }
        }

    def _create_admission_review(self, response: Dict[str, Any], api_version: str) -> Dict[str, Any]:
        """Wrap an AdmissionResponse in an AdmissionReview."""
        return {
            "apiVersion": api_version,
            "kind": "AdmissionReview",
            "response": response
        }

    def run(self, config: WebhookConfig, debug: bool = False):
        """Run the admission controller webhook server over TLS."""
        logger.info("Starting GMSA admission webhook on %s:%s", config.host, config.port)
        self.app.run(
            host=config.host,
            port=config.port,
            debug=debug,
            ssl_context=(config.tls_cert_path, config.tls_key_path)
        )


def create_admission_controller(config: WebhookConfig) -> GMSAAdmissionController:
    """Wire the admission controller to the cluster's authorization and credential spec APIs."""
    api_client = load_kube_config(config.kubeconfig)
    engine = DecisionEngine(
        authorization_gate=KubernetesAuthorizationGate(api_client),
        credential_store=KubernetesCredentialStore(api_client),
        logger=logging.getLogger("src.admission"),
    )
    return GMSAAdmissionController(engine)


def main():
    """Run the admission controller."""
    configure_logging()
    try:
        config = WebhookConfig.load()
    except ConfigurationError as e:
        logger.error("Invalid configuration: %s", e)
        raise SystemExit(1)

    configure_logging(config.log_level)
    controller = create_admission_controller(config)
    controller.run(config)


if __name__ == "__main__":
    main()
