"""
Main Entry Point for GPU Admission
Pod 하나를 노드에 할당해 보고 annotation이 기록된 결과를 출력합니다.
"""

import argparse
import logging
import sys

import yaml

from .allocator import Allocator
from .config import Config
from .device import NodeInfo
from .errors import GPUAdmissionError


def setup_logging(log_level: str = None):
    """로깅을 설정합니다."""
    if log_level is None:
        log_level = Config.LOG_LEVEL

    numeric_level = getattr(logging, log_level.upper(), None)
    if not isinstance(numeric_level, int):
        raise ValueError(f"Invalid log level: {log_level}")

    logging.basicConfig(
        level=numeric_level,
        format=Config.LOG_FORMAT,
        handlers=[logging.StreamHandler(sys.stderr)],
    )


def parse_arguments(argv=None):
    """명령행 인수를 파싱합니다."""
    parser = argparse.ArgumentParser(
        description="GPU Admission - pick GPU devices for a pod on a node",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # 파일로 저장된 노드 상태에 할당
  python -m gpu_admission --pod pod.yaml --node-file node.yaml --pods-file pods.yaml

  # 클러스터의 노드에 할당하고 annotation 기록
  python -m gpu_admission --pod pod.yaml --node gpu-node-1 --bind
        """,
    )

    parser.add_argument("--pod", required=True, help="할당할 Pod manifest (YAML)")

    target = parser.add_mutually_exclusive_group(required=True)
    target.add_argument("--node", help="클러스터에서 조회할 노드 이름")
    target.add_argument("--node-file", help="노드 manifest (YAML)")

    parser.add_argument(
        "--pods-file", help="노드에 이미 할당된 Pod 목록 (YAML list, --node-file과 함께 사용)"
    )
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="할당 가능 여부만 확인 (사용량을 기록하지 않음)",
    )
    parser.add_argument(
        "--bind", action="store_true", help="결과 annotation을 클러스터의 Pod에 기록"
    )
    parser.add_argument("--config", type=str, help="설정 파일 경로")
    parser.add_argument(
        "--log-level",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        default=Config.LOG_LEVEL,
        help="로그 레벨 설정 (기본값: INFO)",
    )

    return parser.parse_args(argv)


def load_yaml(path: str):
    with open(path, "r") as f:
        return yaml.safe_load(f)


def load_config_file(config_path: str):
    """설정 파일을 로드합니다."""
    config_data = load_yaml(config_path) or {}

    if "SHARE_MODE_WEIGHTS" in config_data:
        validate_weights(config_data["SHARE_MODE_WEIGHTS"])

    for key, value in config_data.items():
        if hasattr(Config, key):
            setattr(Config, key, value)
            logging.info(f"Loaded config: {key} = {value}")
        else:
            logging.warning(f"Unknown config key: {key}")

    logging.info(f"Configuration loaded from {config_path}")


def validate_weights(weights):
    """가중치는 4개이고 합이 1.0이어야 합니다."""
    if not isinstance(weights, (list, tuple)) or len(weights) != len(
        Config.SHARE_MODE_WEIGHTS
    ):
        raise ValueError(f"SHARE_MODE_WEIGHTS must have 4 values: {weights}")
    if abs(sum(weights) - 1.0) > 1e-9:
        raise ValueError(f"SHARE_MODE_WEIGHTS must sum to 1.0: {weights}")


def build_node_info(args, k8s_client=None) -> NodeInfo:
    """인수에 따라 파일 또는 클러스터로부터 NodeInfo를 만듭니다."""
    if args.node_file:
        node = load_yaml(args.node_file)
        pods = load_yaml(args.pods_file) if args.pods_file else []
        return NodeInfo(node, pods or [])

    from .resource_view import ResourceView

    node_info = ResourceView(k8s_client).refresh_node(args.node)
    if node_info is None:
        raise GPUAdmissionError(f"node {args.node} not found")
    return node_info


def main(argv=None) -> int:
    """메인 함수"""
    args = parse_arguments(argv)
    setup_logging(args.log_level)

    try:
        if args.config:
            load_config_file(args.config)

        k8s_client = None
        if args.node or args.bind:
            from .k8s_client import KubernetesClient

            k8s_client = KubernetesClient()

        pod = load_yaml(args.pod)
        node_info = build_node_info(args, k8s_client)
        allocator = Allocator(node_info)

        with node_info.lock:
            if args.dry_run:
                allocatable = allocator.is_allocatable(pod, dry_run=True)
                print(f"allocatable: {str(allocatable).lower()}")
                return 0 if allocatable else 1

            new_pod = allocator.allocate(pod)

        if args.bind:
            metadata = new_pod["metadata"]
            if not k8s_client.patch_pod_annotations(
                metadata.get("namespace", "default"),
                metadata["name"],
                metadata["annotations"],
            ):
                return 1

        yaml.safe_dump(new_pod, sys.stdout, default_flow_style=False)
        return 0

    except GPUAdmissionError as e:
        logging.error(f"Allocation failed: {e}")
        return 1
    except (OSError, ValueError, yaml.YAMLError) as e:
        logging.error(f"Invalid input: {e}")
        return 1


if __name__ == "__main__":
    sys.exit(main())
