"""
Kubernetes Client for GPU Admission
Kubernetes API와 상호작용하여 Node / Pod 정보를 조회하고 annotation을 기록합니다.
"""

import logging
from typing import Any, Dict, List, Optional

from kubernetes import client, config
from kubernetes.client.rest import ApiException

from .config import Config

logger = logging.getLogger(__name__)


class KubernetesClient:
    """Kubernetes API 클라이언트"""

    def __init__(self):
        """Kubernetes 클라이언트를 초기화합니다."""
        self._init_kubernetes_client()

    def _init_kubernetes_client(self):
        """Kubernetes 클라이언트를 초기화합니다."""
        try:
            if Config.KUBECONFIG_PATH:
                config.load_kube_config(Config.KUBECONFIG_PATH)
                logger.info(f"Kubernetes config loaded from {Config.KUBECONFIG_PATH}")
            else:
                config.load_incluster_config()
                logger.info("Kubernetes config loaded from in-cluster")

            self.api_client = client.ApiClient()
            self.core_v1 = client.CoreV1Api(self.api_client)
            logger.info("Kubernetes client initialized successfully")

        except Exception as e:
            logger.error(f"Failed to initialize Kubernetes client: {e}")
            raise

    def _to_dict(self, obj) -> Dict[str, Any]:
        """API 객체를 manifest 형태의 dict로 변환합니다."""
        return self.api_client.sanitize_for_serialization(obj)

    def get_node(self, name: str) -> Optional[Dict[str, Any]]:
        """노드를 조회합니다."""
        try:
            return self._to_dict(self.core_v1.read_node(name))
        except ApiException as e:
            logger.error(f"Failed to get node {name}: {e}")
            return None

    def get_pods_on_node(self, node_name: str) -> List[Dict[str, Any]]:
        """
        노드에 바인딩된 Pod와, 아직 바인딩 전이지만 이 노드로 할당된 Pod를
        함께 조회합니다.
        """
        try:
            bound = self.core_v1.list_pod_for_all_namespaces(
                field_selector=f"spec.nodeName={node_name}"
            )
            unbound = self.core_v1.list_pod_for_all_namespaces(
                field_selector="spec.nodeName="
            )
        except ApiException as e:
            logger.error(f"Failed to get pods on node {node_name}: {e}")
            return []

        pods = {}
        for pod in bound.items:
            pods[pod.metadata.uid] = self._to_dict(pod)

        for pod in unbound.items:
            annotations = pod.metadata.annotations or {}
            if annotations.get(Config.PREDICATE_NODE) == node_name:
                pods[pod.metadata.uid] = self._to_dict(pod)

        logger.debug(f"Found {len(pods)} pods on node {node_name}")
        return list(pods.values())

    def patch_pod_annotations(
        self, namespace: str, name: str, annotations: Dict[str, str]
    ) -> bool:
        """Pod에 annotation을 기록합니다."""
        try:
            self.core_v1.patch_namespaced_pod(
                name=name,
                namespace=namespace,
                body={"metadata": {"annotations": annotations}},
            )
            logger.info(f"Patched annotations of pod {namespace}/{name}")
            return True

        except ApiException as e:
            logger.error(f"Failed to patch pod {namespace}/{name}: {e}")
            return False
