"""
core/tools/discovery.py - 업데이터 플러그인 발견

plugins/ 하위 폴더의 __init__.py에서 UPDATER 메타데이터를 읽어 업데이터 목록을 구성합니다.
업데이터 모듈(UPDATER["module"])은 create_updater(registry, config, clients)를 제공해야 합니다.

구조:
    plugins/
    ├── batch/
    │   ├── __init__.py     # UPDATER = {"name": "batch", "surface": "batch", "module": "metrics"}
    │   └── metrics.py      # create_updater(...)
    └── storage/
        ├── __init__.py
        └── metrics.py

Example:
    from core.tools.discovery import discover_updaters, load_updater

    for meta in discover_updaters():
        module = load_updater(meta)
        updater = module.create_updater(registry, config, clients)
"""

from __future__ import annotations

import importlib
import logging
from pathlib import Path
from types import ModuleType
from typing import Any

from core.config import get_plugins_path, validate_updater_metadata
from core.exceptions import MetadataValidationError, PluginLoadError

logger = logging.getLogger(__name__)

PLUGIN_PACKAGE = "plugins"


def discover_updaters(plugins_path: Path | None = None, strict: bool = False) -> list[dict[str, Any]]:
    """업데이터 플러그인 메타데이터 목록

    Args:
        plugins_path: 플러그인 루트 (기본: 프로젝트의 plugins/)
        strict: True면 잘못된 플러그인에서 예외, False면 경고 로그 후 스킵

    Returns:
        이름순 UPDATER 딕셔너리 목록 (각 항목에 "package" 키 추가)

    Raises:
        PluginLoadError: strict 모드에서 import 실패
        MetadataValidationError: strict 모드에서 메타데이터 검증 실패
    """
    root = plugins_path or get_plugins_path()
    updaters: list[dict[str, Any]] = []

    if not root.is_dir():
        logger.warning(f"플러그인 경로 없음: {root}")
        return updaters

    for folder in sorted(p for p in root.iterdir() if p.is_dir() and (p / "__init__.py").exists()):
        if folder.name.startswith(("_", ".")):
            continue
        package = f"{PLUGIN_PACKAGE}.{folder.name}"
        try:
            meta = _read_metadata(package)
        except (PluginLoadError, MetadataValidationError) as e:
            if strict:
                raise
            logger.warning(str(e))
            continue
        if meta is None:
            continue
        if meta.get("enabled", True) is False:
            logger.debug(f"비활성 업데이터 스킵: {meta['name']}")
            continue
        updaters.append(meta)

    logger.debug(f"업데이터 {len(updaters)}개 발견: {', '.join(m['name'] for m in updaters)}")
    return updaters


def _read_metadata(package: str) -> dict[str, Any] | None:
    try:
        module = importlib.import_module(package)
    except Exception as e:
        raise PluginLoadError(package, f"import 실패: {e}", cause=e) from e

    updater = getattr(module, "UPDATER", None)
    if updater is None:
        return None
    if not isinstance(updater, dict):
        raise MetadataValidationError(package, ["UPDATER는 dict여야 함"])

    errors = validate_updater_metadata(updater)
    if errors:
        raise MetadataValidationError(package, errors)

    meta = dict(updater)
    meta.setdefault("module", "metrics")
    meta["package"] = package
    return meta


def load_updater(meta: dict[str, Any]) -> ModuleType:
    """업데이터 모듈 로드

    Raises:
        PluginLoadError: import 실패 또는 create_updater 없음
    """
    module_name = f"{meta['package']}.{meta['module']}"
    try:
        module = importlib.import_module(module_name)
    except Exception as e:
        raise PluginLoadError(meta["name"], f"모듈 import 실패 ({module_name}): {e}", cause=e) from e

    if not callable(getattr(module, "create_updater", None)):
        raise PluginLoadError(meta["name"], f"create_updater 함수 없음 ({module_name})")
    return module
