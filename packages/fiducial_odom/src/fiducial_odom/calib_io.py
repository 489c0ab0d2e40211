"""读取相机标定 JSON（cameras -> {K, dist}）。

文件格式：
    {
      "cameras": {
        "rear_cam": {"K": [[fx,0,cx],[0,fy,cy],[0,0,1]], "dist": [k1,k2,p1,p2,k3]},
        ...
      }
    }

说明：
- 只读取内参；相机相对车体的安装位姿通过配置里的静态 transforms 给出。
- 其它字段（例如外参 R_wc/t_wc）会被忽略，因此同一份融合标定文件可以直接复用。
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any

import numpy as np

from fiducial_odom.types import CameraIntrinsics


def _as_mat(x: Any, shape: tuple[int, int], name: str) -> np.ndarray:
    a = np.asarray(x, dtype=np.float64)
    if a.shape != shape:
        raise RuntimeError(f"{name} 形状应为 {shape}，实际为 {a.shape}")
    return a


def load_camera_intrinsics_from_calib_json(*, calib_json_path: Path, camera: str) -> CameraIntrinsics:
    """读取单个相机的内参。

    Args:
        calib_json_path: 标定 JSON 路径（包含 cameras 字段）。
        camera: 相机 key。

    Returns:
        CameraIntrinsics。

    Raises:
        RuntimeError: 文件缺失、JSON schema 不符合预期、或指定相机不存在。
    """

    p = Path(calib_json_path)
    if not p.exists():
        raise RuntimeError(f"找不到标定文件: {p}")

    try:
        data = json.loads(p.read_text(encoding="utf-8"))
    except (OSError, ValueError) as exc:
        raise RuntimeError(f"无法读取标定 JSON: {p}") from exc

    if not isinstance(data, dict):
        raise RuntimeError("标定 JSON 顶层必须是对象（dict）")

    cams = data.get("cameras")
    if not isinstance(cams, dict) or not cams:
        raise RuntimeError("标定 JSON 缺少 cameras 字段或为空")

    cam = cams.get(str(camera))
    if not isinstance(cam, dict):
        avail = ",".join(sorted(str(k) for k in cams.keys()))
        raise RuntimeError(f"标定文件中找不到相机 {camera}（可用：{avail}）")

    K = _as_mat(cam.get("K"), (3, 3), f"{camera}.K")
    dist = np.asarray(cam.get("dist", []), dtype=np.float64).reshape(-1)
    if not np.isfinite(K).all() or not np.isfinite(dist).all():
        raise RuntimeError(f"{camera} 的内参包含非有限值")

    return CameraIntrinsics(K=K, dist=dist)
