"""
Comparator Chain for GPU Admission
여러 정렬 기준을 하나의 결정적인 순서로 합성합니다.
"""

from functools import cmp_to_key
from typing import List

from .device import DeviceInfo, LessFunc


class DeviceSorter:
    """LessFunc 목록을 앞에서부터 차례로 적용하는 정렬기"""

    def __init__(self, *less: LessFunc):
        if not less:
            raise ValueError("at least one less function is required")
        self.less = list(less)

    def is_less(self, d1: DeviceInfo, d2: DeviceInfo) -> bool:
        # 마지막 기준 전까지는 동률일 때만 다음 기준으로 넘어갑니다
        for less in self.less[:-1]:
            if less(d1, d2):
                return True
            if less(d2, d1):
                return False
        return self.less[-1](d1, d2)

    def _compare(self, d1: DeviceInfo, d2: DeviceInfo) -> int:
        if self.is_less(d1, d2):
            return -1
        if self.is_less(d2, d1):
            return 1
        return 0

    def sort(self, devices: List[DeviceInfo]) -> List[DeviceInfo]:
        """정렬된 새 리스트를 반환합니다."""
        return sorted(devices, key=cmp_to_key(self._compare))
