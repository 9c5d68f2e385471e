"""
Device Registry for GPU Admission
노드별 GPU 디바이스의 용량과 사용량, isolation 시간을 관리합니다.
"""

import copy
import logging
import threading
import time
from dataclasses import dataclass
from typing import Any, Callable, Dict, Iterable, List, Optional

from .config import Config
from .errors import EstimatedTimeError, ResourceUpdateError
from .request import (
    get_capacity_of_node,
    get_containers,
    get_estimated_time_of_container,
    get_gpu_device_count_of_node,
    get_gpu_ids_from_annotation,
    get_gpu_resource_of_container,
    is_gpu_required_container,
)

logger = logging.getLogger(__name__)

# 종료된 Pod는 사용량 계산에서 제외
FINISHED_POD_PHASES = ("Succeeded", "Failed")


@dataclass
class RunningContainer:
    """디바이스 위에서 실행 중인 컨테이너"""

    estimated_time: int
    elapsed_time: int = 0

    @property
    def remaining_time(self) -> int:
        return max(0, self.estimated_time - self.elapsed_time)


class DeviceInfo:
    """GPU 디바이스 한 장의 상태"""

    def __init__(self, device_id: int, total_memory: int):
        self.id = device_id
        self.total_memory = total_memory
        self.used_cores = 0
        self.used_memory = 0
        self.containers: List[RunningContainer] = []

    def get_id(self) -> int:
        return self.id

    def allocatable_cores(self) -> int:
        return Config.HUNDRED_CORE - self.used_cores

    def allocatable_memory(self) -> int:
        return self.total_memory - self.used_memory

    def isolated_time(self) -> int:
        """실행 중인 컨테이너 중 가장 긴 남은 실행 시간을 반환합니다."""
        if not self.containers:
            return 0
        return max(c.remaining_time for c in self.containers)

    def running_container_count(self) -> int:
        return len(self.containers)

    def add_used_resources(
        self, cores: int, memory: int, estimated_time: int, elapsed_time: int = 0
    ):
        """사용량을 기록합니다. 용량을 초과하면 ResourceUpdateError를 발생시킵니다."""
        if self.used_cores + cores > Config.HUNDRED_CORE:
            raise ResourceUpdateError(
                f"update used resource failed: device {self.id} cores "
                f"{self.used_cores}+{cores} > {Config.HUNDRED_CORE}"
            )
        if self.used_memory + memory > self.total_memory:
            raise ResourceUpdateError(
                f"update used resource failed: device {self.id} memory "
                f"{self.used_memory}+{memory} > {self.total_memory}"
            )

        self.used_cores += cores
        self.used_memory += memory
        self.containers.append(RunningContainer(estimated_time, elapsed_time))

    def __repr__(self) -> str:
        return (
            f"DeviceInfo(id={self.id}, cores={self.allocatable_cores()}, "
            f"memory={self.allocatable_memory()}, isolated={self.isolated_time()}, "
            f"containers={self.running_container_count()})"
        )


LessFunc = Callable[[DeviceInfo, DeviceInfo], bool]


def by_allocatable_cores(d1: DeviceInfo, d2: DeviceInfo) -> bool:
    return d1.allocatable_cores() < d2.allocatable_cores()


def by_allocatable_memory(d1: DeviceInfo, d2: DeviceInfo) -> bool:
    return d1.allocatable_memory() < d2.allocatable_memory()


def by_id(d1: DeviceInfo, d2: DeviceInfo) -> bool:
    return d1.id < d2.id


class NodeInfo:
    """노드와 노드에 속한 GPU 디바이스들의 상태"""

    def __init__(self, node: Dict[str, Any], pods: Iterable[Dict[str, Any]] = ()):
        """
        NodeInfo를 초기화합니다.

        pods에는 이 노드에 이미 할당된 Pod들을 넘기며, 각 Pod의 GPU index
        annotation을 읽어 디바이스 사용량을 복원합니다.
        """
        self.node = node
        self.name = node.get("metadata", {}).get("name", "")
        self.device_count = get_gpu_device_count_of_node(node)
        self.total_memory = get_capacity_of_node(node, Config.VMEMORY_RESOURCE)
        self.device_memory = (
            self.total_memory // self.device_count if self.device_count > 0 else 0
        )
        self.lock = threading.RLock()

        self._devices: Dict[int, DeviceInfo] = {
            i: DeviceInfo(i, self.device_memory) for i in range(self.device_count)
        }

        for pod in pods:
            self._add_pod(pod)

    def get_name(self) -> str:
        return self.name

    def get_node(self) -> Dict[str, Any]:
        return self.node

    def get_device_count(self) -> int:
        return self.device_count

    def get_total_memory(self) -> int:
        return self.total_memory

    def get_device(self, device_id: int) -> Optional[DeviceInfo]:
        return self._devices.get(device_id)

    def devices(self) -> List[DeviceInfo]:
        """디바이스 목록을 id 순으로 반환합니다."""
        return [self._devices[i] for i in sorted(self._devices)]

    def add_used_resources(
        self, device_id: int, cores: int, memory: int, estimated_time: int
    ):
        """새 컨테이너의 사용량을 디바이스에 기록합니다 (경과 시간은 0)."""
        device = self._devices.get(device_id)
        if device is None:
            raise ResourceUpdateError(
                f"update used resource failed: node {self.name} has no device {device_id}"
            )
        device.add_used_resources(cores, memory, estimated_time)

    def _add_pod(self, pod: Dict[str, Any]):
        """이미 할당된 Pod의 사용량을 복원합니다."""
        pod_name = pod.get("metadata", {}).get("name", "unknown")
        if pod.get("status", {}).get("phase") in FINISHED_POD_PHASES:
            return

        elapsed_time = self._get_elapsed_time(pod)

        for i, container in enumerate(get_containers(pod)):
            if not is_gpu_required_container(container):
                continue

            device_ids = get_gpu_ids_from_annotation(pod, i)
            if not device_ids:
                continue

            cores = get_gpu_resource_of_container(container, Config.VCORE_RESOURCE)
            memory = get_gpu_resource_of_container(container, Config.VMEMORY_RESOURCE)
            if cores >= Config.HUNDRED_CORE:
                cores = Config.HUNDRED_CORE
                memory = self.device_memory

            try:
                estimated_time = get_estimated_time_of_container(pod, i)
            except EstimatedTimeError as e:
                logger.warning(f"Failed to read estimated time of pod {pod_name}: {e}")
                estimated_time = 0

            for device_id in device_ids:
                device = self._devices.get(device_id)
                if device is None:
                    logger.warning(
                        f"Pod {pod_name} refers to unknown device {device_id} "
                        f"on node {self.name}"
                    )
                    continue
                try:
                    device.add_used_resources(cores, memory, estimated_time, elapsed_time)
                except ResourceUpdateError as e:
                    logger.warning(f"Failed to restore usage of pod {pod_name}: {e}")

    def _get_elapsed_time(self, pod: Dict[str, Any]) -> int:
        """predicate-time annotation으로부터 경과 시간(초)을 계산합니다."""
        annotations = pod.get("metadata", {}).get("annotations") or {}
        raw = annotations.get(Config.PREDICATE_TIME)
        if not raw:
            return 0
        try:
            predicate_ns = int(raw)
        except ValueError:
            logger.warning(f"Invalid predicate time {raw!r}")
            return 0
        return max(0, (time.time_ns() - predicate_ns) // 1_000_000_000)

    def __deepcopy__(self, memo):
        clone = NodeInfo.__new__(NodeInfo)
        memo[id(self)] = clone
        for key, value in self.__dict__.items():
            if key == "lock":
                clone.lock = threading.RLock()
            else:
                setattr(clone, key, copy.deepcopy(value, memo))
        return clone

    def __repr__(self) -> str:
        return f"NodeInfo(name={self.name}, devices={self.devices()})"
