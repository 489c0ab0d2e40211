"""单测：约束融合核心不依赖采集/检测 adapter。

动机：
- selector/compositor/velocity/driver 只应依赖接口（DetectionSource/TransformResolver/OdometrySink），
  这样单测可以直接注入测试替身，也能把核心搬到其它传输层（例如 ROS 节点）里复用。
- OpenCV 设备、ArUco 检测、配置装配都属于 adapter 层，不允许被核心模块 import。
"""

from __future__ import annotations

import ast
from pathlib import Path

_CORE_MODULES = ("types", "transforms", "tf_buffer", "selector", "compositor", "velocity", "driver", "errors")
_FORBIDDEN_PREFIXES = (
    "cv2",
    "yaml",
    "fiducial_odom.detector",
    "fiducial_odom.sources",
    "fiducial_odom.pnp",
    "fiducial_odom.runtime_wiring",
    "fiducial_odom.config",
)


def _imported_modules(path: Path) -> list[tuple[int, str]]:
    tree = ast.parse(path.read_text(encoding="utf-8"), filename=str(path))
    out: list[tuple[int, str]] = []
    for node in ast.walk(tree):
        if isinstance(node, ast.Import):
            out.extend((node.lineno, a.name) for a in node.names)
        elif isinstance(node, ast.ImportFrom) and node.module:
            out.append((node.lineno, node.module))
    return out


def test_core_modules_do_not_import_adapters() -> None:
    repo_root = Path(__file__).resolve().parents[1]
    pkg = repo_root / "packages" / "fiducial_odom" / "src" / "fiducial_odom"

    bad: list[str] = []
    for name in _CORE_MODULES:
        p = pkg / f"{name}.py"
        assert p.exists(), f"missing core module: {p}"
        for lineno, mod in _imported_modules(p):
            if any(mod == f or mod.startswith(f + ".") or mod.startswith(f + "_") for f in _FORBIDDEN_PREFIXES):
                bad.append(f"{p.relative_to(repo_root).as_posix()}:{lineno}: {mod}")

    assert not bad, "核心模块引用了 adapter：\n" + "\n".join(bad)
