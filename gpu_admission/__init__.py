"""
GPU Admission Package
Share / Exclusive mode GPU device selection for Kubernetes pods
"""

__version__ = "1.0.0"
__description__ = "GPU 디바이스 선택 및 할당 엔진"

from .allocator import AllocationRecord, Allocator, BookedUsage
from .config import Config
from .device import DeviceInfo, NodeInfo
from .errors import (
    AllocationError,
    EstimatedTimeError,
    GPUAdmissionError,
    ResourceUpdateError,
)
from .exclusive_mode import ExclusiveMode
from .resource_view import ResourceView
from .share_mode import ShareMode
from .sorter import DeviceSorter

__all__ = [
    "Allocator",
    "AllocationRecord",
    "BookedUsage",
    "Config",
    "DeviceInfo",
    "NodeInfo",
    "DeviceSorter",
    "ShareMode",
    "ExclusiveMode",
    "ResourceView",
    "GPUAdmissionError",
    "AllocationError",
    "EstimatedTimeError",
    "ResourceUpdateError",
]
