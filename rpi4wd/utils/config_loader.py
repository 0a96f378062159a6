"""YAML 설정 로더."""

from __future__ import annotations

import copy
import os
from pathlib import Path
from typing import Any, Dict, Optional, Union

import yaml

DEFAULT_CONFIG_PATH = Path(__file__).resolve().parents[1] / "config" / "default.yaml"

_TRUTHY = {"1", "true", "yes", "on"}


def _deep_update(base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
    for k, v in override.items():
        if isinstance(v, dict) and isinstance(base.get(k), dict):
            base[k] = _deep_update(base[k], v)
        else:
            base[k] = v
    return base


def _read_yaml(config_path: Path) -> Dict[str, Any]:
    if not config_path.exists():
        raise FileNotFoundError(f"설정 파일을 찾을 수 없습니다: {config_path}")
    with config_path.open("r", encoding="utf-8") as f:
        data = yaml.safe_load(f)
    return data or {}


def load_default_config() -> Dict[str, Any]:
    return copy.deepcopy(_read_yaml(DEFAULT_CONFIG_PATH))


def load_config(path: Optional[Union[str, os.PathLike]] = None) -> Dict[str, Any]:
    """기본 설정 위에 사용자 YAML과 환경 변수를 덮어써서 반환한다.

    path 가 없으면 RPI4WD_CONFIG 환경 변수를 본다. 명시한 파일이 없으면 FileNotFoundError.
    """
    data = load_default_config()

    user_path = path or os.getenv("RPI4WD_CONFIG")
    if user_path:
        _deep_update(data, _read_yaml(Path(user_path)))

    env: Dict[str, Any] = {}
    mock = os.getenv("RPI4WD_MOCK")
    if mock is not None:
        env.setdefault("gpio", {})["backend"] = "mock" if mock.strip().lower() in _TRUTHY else "rpi"
    temperature = os.getenv("RPI4WD_TEMPERATURE_C")
    if temperature:
        env.setdefault("ultrasonic", {})["temperature_c"] = float(temperature)
    return _deep_update(data, env)
