"""
Allocator for GPU Admission
컨테이너별로 Share / Exclusive 모드를 선택해 디바이스를 할당하고,
사용량을 노드에 기록한 뒤 결과를 Pod annotation으로 남깁니다.
"""

import copy
import logging
import time
from dataclasses import dataclass, field
from typing import Any, Dict, List

from .config import Config
from .device import DeviceInfo, NodeInfo
from .errors import AllocationError
from .exclusive_mode import ExclusiveMode
from .request import (
    get_containers,
    get_estimated_time_of_container,
    get_gpu_resource_of_container,
    is_gpu_required_container,
)
from .share_mode import ShareMode

logger = logging.getLogger(__name__)


@dataclass
class BookedUsage:
    """디바이스 하나에 기록된 사용량"""

    node_name: str
    device_id: int
    cores: int
    memory: int
    estimated_time: int


@dataclass
class AllocationRecord:
    """컨테이너 하나의 할당 결과"""

    container_name: str
    device_ids: List[int] = field(default_factory=list)
    cores: int = 0
    memory: int = 0


class Allocator:
    """
    노드 하나에 대한 GPU Allocator

    사용량 기록은 롤백하지 않습니다. 여러 디바이스 또는 여러 컨테이너 중
    하나라도 실패하면 호출 전체가 실패하지만, 그 전에 기록된 사용량은
    NodeInfo에 그대로 남고 ``booked`` 에서 확인할 수 있습니다.

    동시성 제어는 하지 않으므로 같은 노드에 대한 호출은 호출자가
    ``node_info.lock`` 으로 직렬화해야 합니다.
    """

    def __init__(self, node_info: NodeInfo):
        self.node_info = node_info
        self.booked: List[BookedUsage] = []
        self.records: List[AllocationRecord] = []

    def is_allocatable(self, pod: Dict[str, Any], dry_run: bool = False) -> bool:
        """
        Pod의 모든 GPU 컨테이너가 할당 가능한지 확인합니다.

        dry_run이 False이면 allocate_one이 실제로 사용량을 기록하므로 같은 Pod로
        두 번 호출하면 사용량이 두 번 기록됩니다. dry_run이 True이면 NodeInfo의
        복사본에서만 계산합니다.
        """
        allocator = self
        if dry_run:
            allocator = Allocator(copy.deepcopy(self.node_info))

        pod_name = pod.get("metadata", {}).get("name", "unknown")
        for i, container in enumerate(get_containers(pod)):
            if not is_gpu_required_container(container):
                continue
            try:
                allocator.allocate_one(pod, i, container)
            except Exception as e:
                logger.info(
                    f"failed to allocate for pod {pod_name} container "
                    f"{container.get('name')}: {e}"
                )
                return False
        return True

    def allocate(self, pod: Dict[str, Any]) -> Dict[str, Any]:
        """
        디바이스를 할당하고 annotation이 기록된 Pod 복사본을 반환합니다.

        입력 Pod는 변경하지 않습니다. 컨테이너 하나라도 실패하면 예외를 그대로
        전달하며, 앞선 컨테이너의 사용량은 되돌리지 않습니다.
        """
        new_pod = copy.deepcopy(pod)
        metadata = new_pod.setdefault("metadata", {})
        if metadata.get("annotations") is None:
            metadata["annotations"] = {}
        annotations = metadata["annotations"]

        for i, container in enumerate(get_containers(new_pod)):
            if not is_gpu_required_container(container):
                continue
            try:
                devs = self.allocate_one(pod, i, container)
            except Exception:
                logger.info(
                    f"failed to allocate for pod {metadata.get('name')}"
                    f"({container.get('name')})"
                )
                raise
            annotations[Config.get_gpu_index_annotation(i)] = ",".join(
                str(dev.get_id()) for dev in devs
            )

        annotations[Config.PREDICATE_NODE] = self.node_info.get_name()
        annotations[Config.GPU_ASSIGNED] = "false"
        annotations[Config.PREDICATE_TIME] = str(time.time_ns())

        return new_pod

    def allocate_one(
        self, pod: Dict[str, Any], container_index: int, container: Dict[str, Any]
    ) -> List[DeviceInfo]:
        """컨테이너 하나에 디바이스를 할당하고 사용량을 기록합니다."""
        device_count = self.node_info.get_device_count()
        device_memory = (
            self.node_info.get_total_memory() // device_count if device_count > 0 else 0
        )

        need_cores = get_gpu_resource_of_container(container, Config.VCORE_RESOURCE)
        need_memory = get_gpu_resource_of_container(container, Config.VMEMORY_RESOURCE)
        estimated_time = get_estimated_time_of_container(pod, container_index)

        shared_mode = need_cores < Config.HUNDRED_CORE
        if shared_mode:
            devs = ShareMode(self.node_info).evaluate(
                need_cores, need_memory, estimated_time
            )
        else:
            devs = ExclusiveMode(self.node_info).evaluate(need_cores, need_memory)

        container_name = container.get("name", str(container_index))
        if not devs:
            raise AllocationError(container_name)

        if shared_mode:
            vcore, vmemory = need_cores, need_memory
        else:
            vcore, vmemory = Config.HUNDRED_CORE, device_memory

        # 실패해도 앞서 기록한 사용량은 되돌리지 않음
        for dev in devs:
            try:
                self.node_info.add_used_resources(
                    dev.get_id(), vcore, vmemory, estimated_time
                )
            except Exception as e:
                logger.info(
                    f"failed to update used resource for node "
                    f"{self.node_info.get_name()} dev {dev.get_id()} due to {e}"
                )
                raise
            self.booked.append(
                BookedUsage(
                    node_name=self.node_info.get_name(),
                    device_id=dev.get_id(),
                    cores=vcore,
                    memory=vmemory,
                    estimated_time=estimated_time,
                )
            )

        record = AllocationRecord(
            container_name=container_name,
            device_ids=[dev.get_id() for dev in devs],
            cores=vcore,
            memory=vmemory,
        )
        self.records.append(record)
        logger.debug(f"Allocated {record} on node {self.node_info.get_name()}")
        return devs
