"""
GPU Admission Configuration
GPU 디바이스 선택 및 할당을 위한 설정값들을 정의합니다.
"""

import os
from typing import Tuple


class Config:
    """GPU Admission 설정 클래스"""

    # Kubernetes 관련 설정
    KUBECONFIG_PATH = os.getenv("KUBECONFIG_PATH", "")

    # 리소스 이름 (vcuda-core는 1/100 GPU 단위)
    VCORE_RESOURCE = "tencent.com/vcuda-core"
    VMEMORY_RESOURCE = "tencent.com/vcuda-memory"

    # 100 vcore = GPU 한 장, 이 값 이상이면 Exclusive 모드
    HUNDRED_CORE = 100

    # TOPSIS 기준별 가중치: cores, memory, 대기 시간, 컨테이너 수
    SHARE_MODE_WEIGHTS: Tuple[float, float, float, float] = (0.3, 0.3, 0.2, 0.2)

    # Annotation 키
    PREDICATE_GPU_INDEX_PREFIX = "tencent.com/gpu-idx-"
    PREDICATE_NODE = "tencent.com/predicate-node"
    GPU_ASSIGNED = "tencent.com/gpu-assigned"
    PREDICATE_TIME = "tencent.com/predicate-time"
    ESTIMATED_TIME_PREFIX = "tencent.com/estimated-time-"

    # 예상 실행 시간 annotation이 없을 때 사용하는 값 (초)
    DEFAULT_ESTIMATED_TIME = int(os.getenv("DEFAULT_ESTIMATED_TIME", "0"))

    # Share 모드에서 요청량보다 여유가 적은 디바이스를 후보에서 제외할지 여부
    ENFORCE_CAPACITY_FILTER = (
        os.getenv("ENFORCE_CAPACITY_FILTER", "false").lower() == "true"
    )

    # 로깅 설정
    LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
    LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

    @classmethod
    def get_share_mode_weights(cls) -> Tuple[float, float, float, float]:
        """TOPSIS 가중치를 반환합니다."""
        return tuple(cls.SHARE_MODE_WEIGHTS)

    @classmethod
    def get_gpu_index_annotation(cls, container_index: int) -> str:
        """컨테이너 인덱스에 해당하는 GPU index annotation 키를 반환합니다."""
        return f"{cls.PREDICATE_GPU_INDEX_PREFIX}{container_index}"

    @classmethod
    def get_estimated_time_annotation(cls, container_index: int) -> str:
        """컨테이너 인덱스에 해당하는 예상 실행 시간 annotation 키를 반환합니다."""
        return f"{cls.ESTIMATED_TIME_PREFIX}{container_index}"


# 가중치 합은 항상 1.0
assert abs(sum(Config.SHARE_MODE_WEIGHTS) - 1.0) < 1e-9, "weights must sum to 1.0"
