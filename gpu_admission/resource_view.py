"""
Resource View Module for GPU Admission
노드와 노드에 할당된 Pod들로부터 GPU 디바이스 사용 현황(NodeInfo)을 구성합니다.
"""

import logging
from typing import Any, Dict, List, Optional

from .device import NodeInfo

logger = logging.getLogger(__name__)


class ResourceView:
    """노드별 NodeInfo를 만들어 캐시하는 클래스"""

    def __init__(self, k8s_client):
        """ResourceView를 초기화합니다."""
        self.k8s_client = k8s_client
        self._node_infos: Dict[str, NodeInfo] = {}

    def refresh_node(self, node_name: str) -> Optional[NodeInfo]:
        """클러스터 상태로부터 NodeInfo를 새로 만듭니다."""
        node = self.k8s_client.get_node(node_name)
        if node is None:
            logger.error(f"Node {node_name} not found")
            return None

        pods = self.k8s_client.get_pods_on_node(node_name)
        node_info = NodeInfo(node, pods)
        self._node_infos[node_name] = node_info
        logger.info(
            f"Node {node_name} refreshed: {node_info.get_device_count()} devices, "
            f"{len(pods)} pods"
        )
        return node_info

    def get_node_info(self, node_name: str) -> Optional[NodeInfo]:
        """캐시된 NodeInfo를 반환하고, 없으면 새로 만듭니다."""
        node_info = self._node_infos.get(node_name)
        if node_info is None:
            node_info = self.refresh_node(node_name)
        return node_info

    def forget_node(self, node_name: str):
        self._node_infos.pop(node_name, None)

    def get_node_summary(self, node_name: str) -> Dict[str, Any]:
        """노드의 디바이스별 사용 현황 요약을 반환합니다."""
        node_info = self._node_infos.get(node_name)
        if node_info is None:
            return {}

        devices: List[Dict[str, Any]] = [
            {
                "id": dev.get_id(),
                "allocatable_cores": dev.allocatable_cores(),
                "allocatable_memory": dev.allocatable_memory(),
                "isolated_time": dev.isolated_time(),
                "containers": dev.running_container_count(),
            }
            for dev in node_info.devices()
        ]
        return {
            "name": node_name,
            "device_count": node_info.get_device_count(),
            "total_memory": node_info.get_total_memory(),
            "devices": devices,
        }
