"""
YAML 설정 로더

config/ 디렉터리의 YAML 파일을 읽어 하나의 dict 로 병합합니다.
"""

import logging
from pathlib import Path
from typing import Any

import yaml

logger = logging.getLogger(__name__)

CONFIG_DIR = Path(__file__).parent.parent / "config"


def load_yaml(path: str | Path) -> dict[str, Any]:
    """YAML 파일 하나 로드 (비어 있으면 빈 dict)"""
    with open(path, encoding="utf-8") as f:
        return yaml.safe_load(f) or {}


def load_config(*names: str, config_dir: str | Path | None = None) -> dict[str, Any]:
    """
    설정 파일 로드 및 병합

    Args:
        names: 파일 이름 (확장자 제외, 예: "service", "admin")
        config_dir: 설정 디렉터리 (기본: 프로젝트 루트의 config/)

    Returns:
        최상위 키 기준으로 병합된 설정 (뒤 파일이 우선)
    """
    config_dir = Path(config_dir) if config_dir else CONFIG_DIR
    merged: dict[str, Any] = {}
    for name in names:
        path = config_dir / f"{name}.yaml"
        if not path.exists():
            logger.warning(f"Config file not found: {path}")
            continue
        merged.update(load_yaml(path))
        logger.debug(f"Loaded config: {path}")
    return merged
