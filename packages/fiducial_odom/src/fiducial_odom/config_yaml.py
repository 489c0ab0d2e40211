"""fiducial_odom 的 YAML/JSON 配置加载入口。

约定：
    - 文件顶层为一个 mapping，对应 `FiducialOdomConfig` 的字段名。
    - 子节点（marker/output）也是 mapping，对应各子配置 dataclass 的字段名。
    - `sources` 是 “source id -> SourceConfig 字段” 的 mapping；`transforms` 是 StaticTransformConfig 的列表。
    - 未提供的字段使用 dataclass 的默认值。
    - 未知字段会报错，避免“拼写错了但静默无效”。

依赖：
    - 本模块依赖 PyYAML（`pyyaml`）。
"""

from __future__ import annotations

import json
from dataclasses import MISSING, Field, fields, is_dataclass
from pathlib import Path
from typing import Any, Mapping, TypeVar

import yaml

from fiducial_odom.config import FiducialOdomConfig, SourceConfig, StaticTransformConfig

_T = TypeVar("_T")


def _as_mapping(x: Any, where: str = "root") -> Mapping[str, Any]:
    if x is None:
        return {}
    if isinstance(x, Mapping):
        return x
    raise TypeError(f"配置节点 {where} 必须是 mapping，实际是：{type(x).__name__}")


def _normalize_value_for_field(f: Field[Any], value: Any) -> Any:
    """把 YAML 里的 list 归一为 tuple（字段默认值为 tuple 或注解为 tuple 时）。"""

    if value is None:
        return None

    is_tuple_field = (f.default is not MISSING and isinstance(f.default, tuple)) or str(f.type).startswith("tuple")
    if is_tuple_field and isinstance(value, (list, tuple)):
        return tuple(value)

    return value


def _nested_dataclass_type_from_field(f: Field[Any]) -> type | None:
    """通过 default_factory 推断嵌套 dataclass 类型（例如 marker/output）。"""

    if f.default_factory is MISSING:  # type: ignore[comparison-overlap]
        return None

    try:
        inst = f.default_factory()  # type: ignore[misc]
    except TypeError:
        return None

    if is_dataclass(inst):
        return type(inst)

    return None


def _dataclass_from_mapping(cls: type[_T], data: Mapping[str, Any]) -> _T:
    if not is_dataclass(cls):
        raise TypeError(f"期望 dataclass 类型，实际是：{cls}")

    allowed = {f.name for f in fields(cls)}
    unknown = sorted(set(data.keys()) - allowed)
    if unknown:
        raise KeyError(f"{cls.__name__} 出现未知字段：{unknown}")

    required = [
        f.name
        for f in fields(cls)
        if f.default is MISSING and f.default_factory is MISSING  # type: ignore[comparison-overlap]
    ]
    missing = sorted(set(required) - set(data.keys()))
    if missing:
        raise KeyError(f"{cls.__name__} 缺少必填字段：{missing}")

    kwargs: dict[str, Any] = {}
    for f in fields(cls):
        if f.name not in data:
            continue

        raw = data[f.name]
        if cls is FiducialOdomConfig and f.name == "sources":
            kwargs[f.name] = {
                str(sid): _dataclass_from_mapping(SourceConfig, _as_mapping(v, f"sources.{sid}"))
                for sid, v in _as_mapping(raw, "sources").items()
            }
            continue
        if cls is FiducialOdomConfig and f.name == "transforms":
            if raw is None:
                raw = []
            if not isinstance(raw, (list, tuple)):
                raise TypeError(f"transforms 必须是列表，实际是：{type(raw).__name__}")
            kwargs[f.name] = tuple(
                _dataclass_from_mapping(StaticTransformConfig, _as_mapping(v, f"transforms[{i}]"))
                for i, v in enumerate(raw)
            )
            continue

        nested_cls = _nested_dataclass_type_from_field(f)
        if nested_cls is not None:
            kwargs[f.name] = _dataclass_from_mapping(nested_cls, _as_mapping(raw, f.name))
        else:
            kwargs[f.name] = _normalize_value_for_field(f, raw)

    return cls(**kwargs)  # type: ignore[call-arg]


def fiducial_odom_config_from_dict(data: Mapping[str, Any]) -> FiducialOdomConfig:
    """从 dict（通常来自 YAML/JSON）构造并校验 `FiducialOdomConfig`。"""

    return _dataclass_from_mapping(FiducialOdomConfig, data).validate()


def load_fiducial_odom_config(path: str | Path) -> FiducialOdomConfig:
    """从 `.yaml/.yml/.json` 文件加载配置。"""

    p = Path(path)
    if not p.exists():
        raise RuntimeError(f"找不到配置文件: {p}")

    suf = p.suffix.lower()
    text = p.read_text(encoding="utf-8")
    if suf == ".json":
        payload = json.loads(text)
    elif suf in {".yaml", ".yml"}:
        payload = yaml.safe_load(text)
    else:
        raise RuntimeError(f"不支持的配置文件类型: {p}（仅支持 .json/.yaml/.yml）")

    return fiducial_odom_config_from_dict(_as_mapping(payload))
