"""
Annotation Key Resolver Module

Computes the (credential-spec name, credential-spec content) annotation key
pairs a pod can carry: one pod-level pair plus one pair per container.
"""

from typing import List, Iterable, NamedTuple


GMSA_CREDSPEC_SUFFIX = "alpha.windows.kubernetes.io/gmsa-credential-spec"
NAME_KEY_SUFFIX = "-name"

POD_CREDSPEC_CONTENT_KEY = f"pod.{GMSA_CREDSPEC_SUFFIX}"
POD_CREDSPEC_NAME_KEY = POD_CREDSPEC_CONTENT_KEY + NAME_KEY_SUFFIX


class AnnotationPair(NamedTuple):
    """A credential-spec reference key and the key its content is inlined under."""

    name_key: str
    content_key: str


class AnnotationKeyResolver:
    """Resolves the annotation pairs to process for a pod."""

    @staticmethod
    def pod_pair() -> AnnotationPair:
        return AnnotationPair(POD_CREDSPEC_NAME_KEY, POD_CREDSPEC_CONTENT_KEY)

    @staticmethod
    def container_pair(container_name: str) -> AnnotationPair:
        content_key = f"{container_name}.container.{GMSA_CREDSPEC_SUFFIX}"
        return AnnotationPair(content_key + NAME_KEY_SUFFIX, content_key)

    def resolve(self, container_names: Iterable[str]) -> List[AnnotationPair]:
        """
        Resolve the annotation pairs for a pod's containers.

        The pod-level pair comes first, followed by one pair per container
        in the order the containers are declared.

        Args:
            container_names: Names of the pod's containers, in declaration order

        Returns:
            List of len(container_names) + 1 annotation pairs
        """
        pairs = [self.pod_pair()]
        for container_name in container_names:
            pairs.append(self.container_pair(container_name))
        return pairs
