"""
Share Mode Evaluator for GPU Admission
여러 컨테이너가 GPU 한 장을 나눠 쓰는 Share 모드에서 TOPSIS 방식으로
가장 적합한 디바이스를 선택합니다.
"""

import logging
import math
from dataclasses import dataclass
from typing import List, Optional, Sequence

from .config import Config
from .device import (
    DeviceInfo,
    NodeInfo,
    by_allocatable_cores,
    by_allocatable_memory,
    by_id,
)
from .sorter import DeviceSorter

logger = logging.getLogger(__name__)

# 컨테이너 수 컬럼만 작을수록 좋은 cost 기준
COST_CRITERIA = (False, False, False, True)


@dataclass
class DeviceScore:
    """디바이스별 TOPSIS 계산 결과"""

    device: DeviceInfo
    dist_positive: float
    dist_negative: float
    score: float


def build_decision_matrix(
    devices: Sequence[DeviceInfo], estimated_time: int
) -> List[List[float]]:
    """cores, memory, 대기 시간, 컨테이너 수로 결정 행렬을 만듭니다."""
    matrix = []
    for dev in devices:
        wait_time = max(0, estimated_time - dev.isolated_time())
        matrix.append(
            [
                float(dev.allocatable_cores()),
                float(dev.allocatable_memory()),
                float(wait_time),
                float(dev.running_container_count()),
            ]
        )
    return matrix


def normalize(matrix: List[List[float]], weights: Sequence[float]) -> List[List[float]]:
    """컬럼별 유클리드 norm으로 나눈 뒤 가중치를 곱합니다."""
    if not matrix:
        return []

    cols = len(weights)
    norms = [
        math.sqrt(sum(row[j] * row[j] for row in matrix)) for j in range(cols)
    ]

    return [
        [0.0 if norms[j] == 0 else weights[j] * (row[j] / norms[j]) for j in range(cols)]
        for row in matrix
    ]


def ideal_vectors(matrix: List[List[float]]):
    """ideal / anti-ideal 벡터를 계산합니다."""
    ideal, anti_ideal = [], []
    for j, is_cost in enumerate(COST_CRITERIA):
        column = [row[j] for row in matrix]
        if is_cost:
            ideal.append(min(column))
            anti_ideal.append(max(column))
        else:
            ideal.append(max(column))
            anti_ideal.append(min(column))
    return ideal, anti_ideal


def _distance(row: Sequence[float], target: Sequence[float]) -> float:
    return math.sqrt(sum((a - b) * (a - b) for a, b in zip(row, target)))


def relative_closeness(dist_positive: float, dist_negative: float) -> float:
    # 두 거리가 모두 0이면 (ideal == anti-ideal) 0으로 정의
    total = dist_positive + dist_negative
    if total == 0:
        return 0.0
    return dist_negative / total


class ShareMode:
    """
    Share 모드 Evaluator

    모든 디바이스를 (allocatable cores, allocatable memory, id) 오름차순으로
    정렬한 뒤 TOPSIS 상대 근접도가 가장 높은 디바이스 하나를 반환합니다.
    동점이면 정렬 순서상 앞선 디바이스가 선택됩니다.
    """

    def __init__(self, node_info: NodeInfo, enforce_capacity: Optional[bool] = None):
        self.node = node_info
        self.sorter = DeviceSorter(by_allocatable_cores, by_allocatable_memory, by_id)
        self.weights = Config.get_share_mode_weights()
        if enforce_capacity is None:
            enforce_capacity = Config.ENFORCE_CAPACITY_FILTER
        self.enforce_capacity = enforce_capacity

    def _candidates(self, cores: int, memory: int) -> List[DeviceInfo]:
        devices = self.node.devices()
        if self.enforce_capacity:
            devices = [
                dev
                for dev in devices
                if dev.allocatable_cores() >= cores and dev.allocatable_memory() >= memory
            ]
        return self.sorter.sort(devices)

    def rank(self, cores: int, memory: int, estimated_time: int) -> List[DeviceScore]:
        """후보 디바이스별 점수를 정렬 순서대로 반환합니다."""
        devices = self._candidates(cores, memory)
        if not devices:
            return []

        matrix = normalize(build_decision_matrix(devices, estimated_time), self.weights)
        ideal, anti_ideal = ideal_vectors(matrix)

        scores = []
        for dev, row in zip(devices, matrix):
            dist_positive = _distance(row, ideal)
            dist_negative = _distance(row, anti_ideal)
            scores.append(
                DeviceScore(
                    device=dev,
                    dist_positive=dist_positive,
                    dist_negative=dist_negative,
                    score=relative_closeness(dist_positive, dist_negative),
                )
            )
        return scores

    def evaluate(self, cores: int, memory: int, estimated_time: int) -> List[DeviceInfo]:
        """가장 높은 점수의 디바이스 하나를 리스트로 반환합니다."""
        scores = self.rank(cores, memory, estimated_time)
        if not scores:
            logger.info(
                f"No candidate device on node {self.node.get_name()} "
                f"for cores {cores}, memory {memory}"
            )
            return []

        best = scores[0]
        for candidate in scores[1:]:
            if candidate.score > best.score:
                best = candidate

        dev = best.device
        logger.debug(
            f"Pick up {dev.get_id()} (score {best.score:.4f}), "
            f"cores: {dev.allocatable_cores()}, memory: {dev.allocatable_memory()}"
        )
        return [dev]
