#!/usr/bin/env python3
"""
Basic Usage Example for the GMSA Admission Webhook

This example runs the decision engine against in-memory capabilities:
1. Creating a pod that references a credential spec
2. Creating a pod that tries to forge the inlined credential spec
3. Updating a pod's credential spec reference
4. Rendering the manifests to deploy the webhook
"""

import json

from src.admission import AdmissionRequest, DecisionEngine
from src.credentials import InMemoryCredentialStore, StaticAuthorizationGate
from src.enforcement.kubernetes import render_webhook_manifests


NAME_KEY = "iis.container.alpha.windows.kubernetes.io/gmsa-credential-spec-name"
CONTENT_KEY = "iis.container.alpha.windows.kubernetes.io/gmsa-credential-spec"

SAMPLE_CREDSPEC = json.dumps({
    "CmsPlugins": ["ActiveDirectory"],
    "DomainJoinConfig": {
        "DnsName": "contoso.com",
        "NetBiosName": "CONTOSO",
    },
    "ActiveDirectoryConfig": {
        "GroupManagedServiceAccounts": [{"Name": "WebApp1", "Scope": "CONTOSO"}],
    },
})


def sample_pod(annotations):
    return {
        "apiVersion": "v1",
        "kind": "Pod",
        "metadata": {"name": "iis", "namespace": "windows-apps", "annotations": annotations},
        "spec": {
            "serviceAccountName": "webapp1",
            "containers": [{"name": "iis", "image": "mcr.microsoft.com/windows/servercore/iis"}],
        },
    }


def print_outcome(title, outcome):
    print(f"\n{title}")
    print(f"   Allowed: {outcome.allowed}")
    if outcome.allowed:
        for operation in outcome.patch_operations:
            print(f"   Patch: {operation.op} {operation.path}")
    else:
        print(f"   Denied ({outcome.denial_code.name}): {outcome.denial_reason}")


def main():
    """Run the decision engine through a few admission requests."""
    gate = StaticAuthorizationGate([("webapp1", "windows-apps", "webapp1-credspec")])
    store = InMemoryCredentialStore({"webapp1-credspec": SAMPLE_CREDSPEC})
    engine = DecisionEngine(gate, store)

    outcome = engine.decide(AdmissionRequest(
        operation="CREATE",
        obj=sample_pod({NAME_KEY: "webapp1-credspec"}),
        namespace="windows-apps",
        uid="example-1",
    ))
    print_outcome("Creating a pod referencing webapp1-credspec", outcome)

    outcome = engine.decide(AdmissionRequest(
        operation="CREATE",
        obj=sample_pod({NAME_KEY: "webapp1-credspec", CONTENT_KEY: "{}"}),
        namespace="windows-apps",
        uid="example-2",
    ))
    print_outcome("Creating a pod with a forged credential spec", outcome)

    outcome = engine.decide(AdmissionRequest(
        operation="UPDATE",
        obj=sample_pod({NAME_KEY: "other-credspec"}),
        old_obj=sample_pod({NAME_KEY: "webapp1-credspec", CONTENT_KEY: SAMPLE_CREDSPEC}),
        namespace="windows-apps",
        uid="example-3",
    ))
    print_outcome("Changing a running pod's credential spec", outcome)

    print("\nWebhook manifests:")
    print(render_webhook_manifests(
        deployment_name="gmsa-webhook",
        namespace="kube-system",
        image="gmsa-webhook:latest",
        tls_certificate_b64="<base64 cert>",
        tls_private_key_b64="<base64 key>",
        ca_bundle_b64="<base64 CA bundle>",
    ))


if __name__ == "__main__":
    main()
