"""
Request Attributes for GPU Admission
Pod / Node 명세에서 GPU 요청량, 예상 실행 시간, 노드 용량을 추출합니다.
"""

import logging
from typing import Any, Dict, List

from .config import Config
from .errors import EstimatedTimeError

logger = logging.getLogger(__name__)


def parse_quantity(quantity) -> float:
    """Kubernetes Quantity를 float로 변환합니다."""
    if quantity is None:
        return 0.0

    quantity_str = str(quantity)

    if quantity_str.endswith("m"):  # millicores
        return float(quantity_str[:-1]) / 1000
    elif quantity_str.endswith("Ki"):
        return float(quantity_str[:-2]) * 1024
    elif quantity_str.endswith("Mi"):
        return float(quantity_str[:-2]) * 1024 * 1024
    elif quantity_str.endswith("Gi"):
        return float(quantity_str[:-2]) * 1024 * 1024 * 1024
    elif quantity_str.endswith("Ti"):
        return float(quantity_str[:-2]) * 1024 * 1024 * 1024 * 1024
    else:
        try:
            return float(quantity_str)
        except ValueError:
            logger.warning(f"Invalid quantity {quantity_str!r}, treated as 0")
            return 0.0


def _pod_name(pod: Dict[str, Any]) -> str:
    return pod.get("metadata", {}).get("name", "unknown")


def get_gpu_resource_of_container(container: Dict[str, Any], resource_name: str) -> int:
    """컨테이너의 GPU 리소스 요청량을 반환합니다 (limits 우선)."""
    resources = container.get("resources") or {}
    for section in ("limits", "requests"):
        values = resources.get(section) or {}
        if resource_name in values:
            return int(parse_quantity(values[resource_name]))
    return 0


def is_gpu_required_container(container: Dict[str, Any]) -> bool:
    """컨테이너가 vcuda-core를 요청하는지 확인합니다."""
    return get_gpu_resource_of_container(container, Config.VCORE_RESOURCE) > 0


def get_containers(pod: Dict[str, Any]) -> List[Dict[str, Any]]:
    return pod.get("spec", {}).get("containers", []) or []


def get_estimated_time_of_container(pod: Dict[str, Any], container_index: int) -> int:
    """
    컨테이너의 예상 실행 시간(초)을 반환합니다.

    annotation이 없으면 Config.DEFAULT_ESTIMATED_TIME을 사용하고,
    값이 정수가 아니거나 음수이면 EstimatedTimeError를 발생시킵니다.
    """
    annotations = pod.get("metadata", {}).get("annotations") or {}
    key = Config.get_estimated_time_annotation(container_index)

    if key not in annotations:
        return Config.DEFAULT_ESTIMATED_TIME

    raw = annotations[key]
    try:
        estimated_time = int(str(raw).strip())
    except ValueError:
        raise EstimatedTimeError(_pod_name(pod), container_index, f"invalid value {raw!r}")

    if estimated_time < 0:
        raise EstimatedTimeError(_pod_name(pod), container_index, f"negative value {raw!r}")

    return estimated_time


def get_capacity_of_node(node: Dict[str, Any], resource_name: str) -> int:
    """노드의 리소스 capacity를 반환합니다."""
    capacity = node.get("status", {}).get("capacity") or {}
    return int(parse_quantity(capacity.get(resource_name)))


def get_gpu_device_count_of_node(node: Dict[str, Any]) -> int:
    """노드의 GPU 디바이스 수를 반환합니다."""
    return get_capacity_of_node(node, Config.VCORE_RESOURCE) // Config.HUNDRED_CORE


def get_gpu_ids_from_annotation(pod: Dict[str, Any], container_index: int) -> List[int]:
    """allocate가 기록한 GPU index annotation을 파싱합니다."""
    annotations = pod.get("metadata", {}).get("annotations") or {}
    value = annotations.get(Config.get_gpu_index_annotation(container_index), "")

    ids = []
    for item in str(value).split(","):
        item = item.strip()
        if not item:
            continue
        try:
            ids.append(int(item))
        except ValueError:
            logger.warning(f"Invalid GPU index {item!r} in pod {_pod_name(pod)}")
    return ids
