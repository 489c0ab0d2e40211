"""PnP 位姿解算：由靶标四角点得到 marker->camera 变换。

关键点：
- 本模块只做几何求解；角点提取由上游 detector 负责。
- OpenCV 相机坐标系：x 向右，y 向下，z 向前。

角点顺序约定（与 cv2.aruco 的输出一致）：
- corners_px 顺序为 TL, TR, BR, BL（顺时针）。
- 对应 object_points：
  [(-s/2, s/2, 0), (s/2, s/2, 0), (s/2, -s/2, 0), (-s/2, -s/2, 0)]
  即靶标坐标系以中心为原点、x 向右、y 向上、z 垂直靶面朝外。
"""

from __future__ import annotations

from dataclasses import dataclass

import cv2
import numpy as np

from fiducial_odom.transforms import make_T
from fiducial_odom.types import CameraIntrinsics, as_np_f64


@dataclass(frozen=True, slots=True)
class PnPResult:
    """PnP 求解结果。"""

    T_cam_from_marker: np.ndarray  # (4,4)
    reproj_rmse_px: float


def marker_object_points(*, marker_size_m: float) -> np.ndarray:
    """构造靶标 4 角点在靶标坐标系下的 3D 坐标（单位：米）。"""

    s = float(marker_size_m)
    if not np.isfinite(s) or s <= 0:
        raise ValueError(f"marker_size_m must be positive, got {marker_size_m}")

    h = 0.5 * s
    # 顺序：TL, TR, BR, BL
    return np.array(
        [
            [-h, h, 0.0],
            [h, h, 0.0],
            [h, -h, 0.0],
            [-h, -h, 0.0],
        ],
        dtype=np.float64,
    )


def solve_marker_pnp(
    *,
    corners_px: np.ndarray,
    intr: CameraIntrinsics,
    marker_size_m: float,
) -> PnPResult:
    """用四角点解算靶标在相机坐标系下的位姿。

    Args:
        corners_px: (4,2) 像素坐标（u,v），顺序 TL, TR, BR, BL。
        intr: 相机内参与畸变。
        marker_size_m: 靶标边长（米）。

    Returns:
        PnPResult，其中 T_cam_from_marker 表示 marker->camera。
    """

    img_pts = as_np_f64(corners_px, (4, 2))
    obj_pts = marker_object_points(marker_size_m=float(marker_size_m))

    K = as_np_f64(intr.K, (3, 3))
    dist = np.asarray(intr.dist, dtype=np.float64).reshape(-1)

    # 说明：沿用 ITERATIVE；IPPE_SQUARE 对点序的隐含约定在不同 OpenCV 版本间不够稳定。
    ok, rvec, tvec = cv2.solvePnP(
        objectPoints=obj_pts,
        imagePoints=img_pts,
        cameraMatrix=K,
        distCoeffs=dist,
        flags=int(cv2.SOLVEPNP_ITERATIVE),
    )
    if not bool(ok):
        raise RuntimeError("solvePnP failed")

    R, _ = cv2.Rodrigues(rvec)
    T = make_T(R=np.asarray(R, dtype=np.float64), t=np.asarray(tvec, dtype=np.float64).reshape(3))

    proj, _ = cv2.projectPoints(obj_pts, rvec, tvec, K, dist)
    err = np.asarray(proj, dtype=np.float64).reshape(4, 2) - img_pts
    rmse = float(np.sqrt(np.mean(np.sum(err * err, axis=1))))

    return PnPResult(T_cam_from_marker=T, reproj_rmse_px=rmse)
