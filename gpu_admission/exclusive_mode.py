"""
Exclusive Mode Evaluator for GPU Admission
컨테이너 하나가 GPU 여러 장을 통째로 사용하는 Exclusive 모드입니다.
"""

import logging
from typing import List, Optional

from .config import Config
from .device import DeviceInfo, NodeInfo, by_allocatable_cores, by_id
from .sorter import DeviceSorter

logger = logging.getLogger(__name__)


class ExclusiveMode:
    """완전히 비어 있는 디바이스를 정렬 순서대로 필요한 수만큼 선택합니다."""

    def __init__(self, node_info: NodeInfo):
        self.node = node_info
        self.sorter = DeviceSorter(by_allocatable_cores, by_id)

    def evaluate(
        self, cores: int, memory: int, estimated_time: Optional[int] = None
    ) -> List[DeviceInfo]:
        # 100 단위로 올림: 150 vcore는 GPU 2장
        num = -(-cores // Config.HUNDRED_CORE)
        if num <= 0:
            return []

        devs = []
        for dev in self.sorter.sort(self.node.devices()):
            if (
                dev.allocatable_cores() == Config.HUNDRED_CORE
                and dev.allocatable_memory() == dev.total_memory
            ):
                devs.append(dev)
                if len(devs) == num:
                    break

        if len(devs) < num:
            logger.info(
                f"Node {self.node.get_name()} has {len(devs)} idle devices, "
                f"{num} required"
            )
            return []

        logger.debug(f"Pick up devices {[dev.get_id() for dev in devs]}")
        return devs
