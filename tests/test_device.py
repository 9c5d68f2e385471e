"""
디바이스 레지스트리, 정렬기, 요청 속성 테스트
"""

import copy
import time
import unittest

from gpu_admission.config import Config
from gpu_admission.device import (
    DeviceInfo,
    NodeInfo,
    by_allocatable_cores,
    by_allocatable_memory,
    by_id,
)
from gpu_admission.errors import EstimatedTimeError, ResourceUpdateError
from gpu_admission.exclusive_mode import ExclusiveMode
from gpu_admission.request import (
    get_estimated_time_of_container,
    get_gpu_device_count_of_node,
    get_gpu_ids_from_annotation,
    get_gpu_resource_of_container,
    is_gpu_required_container,
    parse_quantity,
)
from gpu_admission.sorter import DeviceSorter

from conftest import make_container, make_node, make_pod, set_device


class TestRequestAttributes(unittest.TestCase):
    """요청 속성 추출 테스트"""

    def test_parse_quantity(self):
        self.assertEqual(parse_quantity("500m"), 0.5)
        self.assertEqual(parse_quantity("1Ki"), 1024.0)
        self.assertEqual(parse_quantity("1Gi"), 1073741824.0)
        self.assertEqual(parse_quantity("30"), 30.0)
        self.assertEqual(parse_quantity(None), 0.0)
        self.assertEqual(parse_quantity("abc"), 0.0)

    def test_gpu_resource_prefers_limits(self):
        container = {
            "resources": {
                "limits": {Config.VCORE_RESOURCE: "40"},
                "requests": {Config.VCORE_RESOURCE: "20", Config.VMEMORY_RESOURCE: "8"},
            }
        }
        self.assertEqual(get_gpu_resource_of_container(container, Config.VCORE_RESOURCE), 40)
        self.assertEqual(get_gpu_resource_of_container(container, Config.VMEMORY_RESOURCE), 8)
        self.assertEqual(get_gpu_resource_of_container({}, Config.VCORE_RESOURCE), 0)

    def test_is_gpu_required_container(self):
        self.assertTrue(is_gpu_required_container(make_container("a", cores=10)))
        self.assertFalse(is_gpu_required_container(make_container("b", memory=10)))
        self.assertFalse(is_gpu_required_container({"name": "c"}))

    def test_estimated_time(self):
        pod = make_pod([], annotations={Config.get_estimated_time_annotation(1): "120"})
        self.assertEqual(get_estimated_time_of_container(pod, 1), 120)

        # annotation이 없으면 기본값
        Config.DEFAULT_ESTIMATED_TIME = 7
        self.assertEqual(get_estimated_time_of_container(pod, 0), 7)

    def test_estimated_time_invalid(self):
        pod = make_pod([], annotations={Config.get_estimated_time_annotation(0): "soon"})
        with self.assertRaises(EstimatedTimeError):
            get_estimated_time_of_container(pod, 0)

        pod = make_pod([], annotations={Config.get_estimated_time_annotation(0): "-1"})
        with self.assertRaises(EstimatedTimeError) as ctx:
            get_estimated_time_of_container(pod, 0)
        self.assertEqual(ctx.exception.container_index, 0)

    def test_gpu_ids_from_integer_annotation(self):
        # YAML에서 따옴표 없이 쓴 index는 int로 읽힘
        pod = make_pod([], annotations={Config.get_gpu_index_annotation(0): 2})
        self.assertEqual(get_gpu_ids_from_annotation(pod, 0), [2])

        node_info = NodeInfo(
            make_node(device_count=4),
            [make_pod([make_container("a", cores=30, memory=10)], annotations={
                Config.get_gpu_index_annotation(0): 0,
            })],
        )
        self.assertEqual(node_info.get_device(0).allocatable_cores(), 70)

    def test_invalid_quantity_is_logged(self):
        with self.assertLogs("gpu_admission.request", level="WARNING") as logs:
            self.assertEqual(parse_quantity("lots"), 0.0)
        self.assertIn("lots", logs.output[0])

        container = {"resources": {"limits": {Config.VCORE_RESOURCE: "ten"}}}
        with self.assertLogs("gpu_admission.request", level="WARNING"):
            self.assertFalse(is_gpu_required_container(container))

    def test_gpu_ids_from_annotation(self):
        pod = make_pod([], annotations={Config.get_gpu_index_annotation(0): "0, 2,x,"})
        self.assertEqual(get_gpu_ids_from_annotation(pod, 0), [0, 2])
        self.assertEqual(get_gpu_ids_from_annotation(pod, 1), [])

    def test_device_count_of_node(self):
        self.assertEqual(get_gpu_device_count_of_node(make_node(device_count=4)), 4)
        self.assertEqual(get_gpu_device_count_of_node({"status": {}}), 0)


class TestDeviceInfo(unittest.TestCase):
    """디바이스 상태 테스트"""

    def test_add_used_resources(self):
        dev = DeviceInfo(0, 100)
        dev.add_used_resources(30, 40, 50)

        self.assertEqual(dev.allocatable_cores(), 70)
        self.assertEqual(dev.allocatable_memory(), 60)
        self.assertEqual(dev.running_container_count(), 1)
        self.assertEqual(dev.isolated_time(), 50)

    def test_isolated_time_uses_longest_remaining(self):
        dev = DeviceInfo(0, 100)
        self.assertEqual(dev.isolated_time(), 0)

        dev.add_used_resources(10, 10, 30, elapsed_time=20)
        dev.add_used_resources(10, 10, 15)
        dev.add_used_resources(10, 10, 5, elapsed_time=50)
        self.assertEqual(dev.isolated_time(), 15)

    def test_overbooking_rejected(self):
        dev = DeviceInfo(0, 100)
        dev.add_used_resources(80, 10, 0)

        with self.assertRaises(ResourceUpdateError):
            dev.add_used_resources(30, 10, 0)
        with self.assertRaises(ResourceUpdateError):
            dev.add_used_resources(10, 95, 0)

        self.assertEqual(dev.allocatable_cores(), 20)
        self.assertEqual(dev.running_container_count(), 1)


class TestNodeInfo(unittest.TestCase):
    """노드 레지스트리 테스트"""

    def test_capacity(self):
        info = NodeInfo(make_node(device_count=4, device_memory=64))

        self.assertEqual(info.get_name(), "gpu-node-1")
        self.assertEqual(info.get_device_count(), 4)
        self.assertEqual(info.get_total_memory(), 256)
        self.assertEqual([dev.get_id() for dev in info.devices()], [0, 1, 2, 3])
        self.assertEqual(info.get_device(3).allocatable_memory(), 64)

    def test_unknown_device(self):
        info = NodeInfo(make_node(device_count=1))
        with self.assertRaises(ResourceUpdateError):
            info.add_used_resources(5, 10, 10, 0)

    def test_restore_usage_from_pods(self):
        shared = make_pod(
            [make_container("a", cores=30, memory=10), make_container("sidecar")],
            name="shared",
            annotations={Config.get_gpu_index_annotation(0): "1"},
        )
        exclusive = make_pod(
            [make_container("b", cores=200, memory=1)],
            name="exclusive",
            annotations={Config.get_gpu_index_annotation(0): "0,2"},
        )
        finished = make_pod(
            [make_container("c", cores=50, memory=50)],
            name="finished",
            annotations={Config.get_gpu_index_annotation(0): "3"},
        )
        finished["status"] = {"phase": "Succeeded"}

        info = NodeInfo(make_node(device_count=4), [shared, exclusive, finished])

        self.assertEqual(info.get_device(1).allocatable_cores(), 70)
        self.assertEqual(info.get_device(1).allocatable_memory(), 90)
        self.assertEqual(info.get_device(0).allocatable_cores(), 0)
        self.assertEqual(info.get_device(0).allocatable_memory(), 0)
        self.assertEqual(info.get_device(2).allocatable_cores(), 0)
        self.assertEqual(info.get_device(3).allocatable_cores(), 100)
        self.assertEqual(info.get_device(3).running_container_count(), 0)

    def test_restore_elapsed_time(self):
        predicate_ns = time.time_ns() - 3 * 1_000_000_000
        pod = make_pod(
            [make_container("a", cores=10, memory=10)],
            annotations={
                Config.get_gpu_index_annotation(0): "0",
                Config.get_estimated_time_annotation(0): "10",
                Config.PREDICATE_TIME: str(predicate_ns),
            },
        )
        info = NodeInfo(make_node(device_count=1), [pod])

        self.assertIn(info.get_device(0).isolated_time(), (6, 7))

    def test_unknown_device_in_pod_is_skipped(self):
        pod = make_pod(
            [make_container("a", cores=10, memory=10)],
            annotations={Config.get_gpu_index_annotation(0): "9"},
        )
        info = NodeInfo(make_node(device_count=1), [pod])
        self.assertEqual(info.get_device(0).allocatable_cores(), 100)

    def test_deepcopy_is_independent(self):
        info = NodeInfo(make_node(device_count=2))
        clone = copy.deepcopy(info)
        clone.add_used_resources(0, 50, 50, 0)

        self.assertEqual(info.get_device(0).allocatable_cores(), 100)
        self.assertEqual(clone.get_device(0).allocatable_cores(), 50)
        self.assertIsNot(clone.lock, info.lock)


class TestDeviceSorter(unittest.TestCase):
    """비교자 체인 테스트"""

    def setUp(self):
        self.info = NodeInfo(make_node(device_count=4))
        set_device(self.info, 0, cores=50, memory=80)
        set_device(self.info, 1, cores=50, memory=20)
        set_device(self.info, 2, cores=10, memory=100)
        set_device(self.info, 3, cores=50, memory=20)

    def test_chain_order(self):
        sorter = DeviceSorter(by_allocatable_cores, by_allocatable_memory, by_id)
        ordered = sorter.sort(self.info.devices())
        self.assertEqual([dev.get_id() for dev in ordered], [2, 1, 3, 0])

    def test_last_predicate_decides(self):
        sorter = DeviceSorter(by_allocatable_cores, by_allocatable_memory, by_id)
        dev1, dev3 = self.info.get_device(1), self.info.get_device(3)
        self.assertTrue(sorter.is_less(dev1, dev3))
        self.assertFalse(sorter.is_less(dev3, dev1))
        self.assertFalse(sorter.is_less(dev1, dev1))

    def test_requires_predicate(self):
        with self.assertRaises(ValueError):
            DeviceSorter()


class TestExclusiveMode(unittest.TestCase):
    """Exclusive 모드 테스트"""

    def test_picks_idle_devices(self):
        info = NodeInfo(make_node(device_count=4))
        set_device(info, 0, cores=90, memory=100)

        devs = ExclusiveMode(info).evaluate(200, 0)
        self.assertEqual([dev.get_id() for dev in devs], [1, 2])

    def test_memory_must_be_free(self):
        info = NodeInfo(make_node(device_count=2))
        set_device(info, 1, cores=100, memory=50)

        devs = ExclusiveMode(info).evaluate(100, 0)
        self.assertEqual([dev.get_id() for dev in devs], [0])
        self.assertEqual(ExclusiveMode(info).evaluate(200, 0), [])

    def test_partial_device_request_rounds_up(self):
        info = NodeInfo(make_node(device_count=4))

        devs = ExclusiveMode(info).evaluate(150, 0)
        self.assertEqual([dev.get_id() for dev in devs], [0, 1])
        self.assertGreaterEqual(len(devs) * Config.HUNDRED_CORE, 150)

        set_device(info, 1, cores=50, memory=50)
        set_device(info, 2, cores=50, memory=50)
        set_device(info, 3, cores=50, memory=50)
        self.assertEqual(ExclusiveMode(info).evaluate(150, 0), [])

    def test_no_devices(self):
        info = NodeInfo(make_node(device_count=0))
        self.assertEqual(ExclusiveMode(info).evaluate(100, 0), [])


if __name__ == "__main__":
    unittest.main()
