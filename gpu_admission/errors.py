"""
Errors for GPU Admission
할당 과정에서 발생하는 예외를 정의합니다.
"""


class GPUAdmissionError(Exception):
    """GPU Admission 예외의 기본 클래스"""


class EstimatedTimeError(GPUAdmissionError):
    """컨테이너 예상 실행 시간 조회 실패"""

    def __init__(self, pod_name: str, container_index: int, reason: str):
        self.pod_name = pod_name
        self.container_index = container_index
        super().__init__(
            f"failed to get estimated time of pod {pod_name} "
            f"container {container_index}: {reason}"
        )


class AllocationError(GPUAdmissionError):
    """적합한 디바이스를 찾지 못한 경우"""

    def __init__(self, container_name: str):
        self.container_name = container_name
        super().__init__(f"failed to allocate for container {container_name}")


class ResourceUpdateError(GPUAdmissionError):
    """디바이스 사용량 기록 실패"""
