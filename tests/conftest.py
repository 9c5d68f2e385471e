"""
pytest 공통 설정 및 Fixture 정의
"""

import os
import sys
from typing import Any, Dict, List, Optional

import pytest

# 프로젝트 루트를 Python 경로에 추가
sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

from gpu_admission.config import Config
from gpu_admission.device import NodeInfo, RunningContainer


def make_node(name: str = "gpu-node-1", device_count: int = 2, device_memory: int = 100):
    """테스트용 노드 manifest"""
    return {
        "metadata": {"name": name},
        "status": {
            "capacity": {
                Config.VCORE_RESOURCE: str(device_count * Config.HUNDRED_CORE),
                Config.VMEMORY_RESOURCE: str(device_count * device_memory),
            }
        },
    }


def make_container(name: str, cores: int = 0, memory: int = 0) -> Dict[str, Any]:
    limits = {}
    if cores:
        limits[Config.VCORE_RESOURCE] = str(cores)
    if memory:
        limits[Config.VMEMORY_RESOURCE] = str(memory)
    return {"name": name, "resources": {"limits": limits}}


def make_pod(
    containers: List[Dict[str, Any]],
    name: str = "test-pod",
    annotations: Optional[Dict[str, str]] = None,
):
    """테스트용 Pod manifest"""
    return {
        "metadata": {
            "name": name,
            "namespace": "default",
            "annotations": dict(annotations or {}),
        },
        "spec": {"containers": containers},
    }


def set_device(node_info: NodeInfo, device_id: int, cores: int, memory: int,
               isolated: int = 0, containers: int = 0):
    """
    디바이스 상태를 직접 지정합니다.

    isolated > 0이면 첫 번째 컨테이너의 예상 실행 시간으로 사용합니다.
    """
    dev = node_info.get_device(device_id)
    dev.used_cores = Config.HUNDRED_CORE - cores
    dev.used_memory = dev.total_memory - memory
    dev.containers = [RunningContainer(0) for _ in range(containers)]
    if isolated:
        if dev.containers:
            dev.containers[0] = RunningContainer(isolated)
        else:
            dev.containers.append(RunningContainer(isolated))
    return dev


@pytest.fixture
def node():
    return make_node(device_count=2)


@pytest.fixture
def node_info(node):
    return NodeInfo(node)


@pytest.fixture
def example_node_info():
    """3개 디바이스로 구성된 예제 노드"""
    info = NodeInfo(make_node(device_count=3))
    set_device(info, 0, cores=40, memory=40, isolated=0, containers=2)
    set_device(info, 1, cores=80, memory=80, isolated=0, containers=0)
    set_device(info, 2, cores=10, memory=10, isolated=5, containers=1)
    return info


@pytest.fixture(autouse=True)
def reset_config():
    """각 테스트 후 설정 초기화"""
    weights = Config.SHARE_MODE_WEIGHTS
    default_time = Config.DEFAULT_ESTIMATED_TIME
    enforce = Config.ENFORCE_CAPACITY_FILTER
    yield
    Config.SHARE_MODE_WEIGHTS = weights
    Config.DEFAULT_ESTIMATED_TIME = default_time
    Config.ENFORCE_CAPACITY_FILTER = enforce


# 테스트 마커 등록
def pytest_configure(config):
    """pytest 설정"""
    config.addinivalue_line("markers", "unit: mark test as unit test")
    config.addinivalue_line("markers", "integration: mark test as integration test")
    config.addinivalue_line("markers", "kubernetes: mark test as requiring kubernetes")
