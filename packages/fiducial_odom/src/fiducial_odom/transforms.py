"""坐标变换工具：4x4 齐次矩阵 + 四元数/欧拉角转换。

约定：
- 用 4x4 矩阵表示刚体变换，记作 T_dst_from_src。
- 点从 src 坐标系变换到 dst：X_dst = T_dst_from_src @ X_src（X 为齐次坐标 (4,)）。
- 四元数顺序为 (x, y, z, w)。
- roll/pitch/yaw 采用固定轴 XYZ 分解：R = Rz(yaw) @ Ry(pitch) @ Rx(roll)（与 tf2 的 getRPY 一致）。
"""

from __future__ import annotations

import numpy as np
from scipy.spatial.transform import Rotation


def make_T(*, R: np.ndarray, t: np.ndarray) -> np.ndarray:
    """由 R,t 构造 4x4 齐次矩阵。"""

    R = np.asarray(R, dtype=np.float64).reshape(3, 3)
    t = np.asarray(t, dtype=np.float64).reshape(3)
    T = np.eye(4, dtype=np.float64)
    T[:3, :3] = R
    T[:3, 3] = t
    return T


def invert_T(T: np.ndarray) -> np.ndarray:
    """求刚体变换的逆（利用 R^T，避免通用矩阵求逆的数值误差）。"""

    T = np.asarray(T, dtype=np.float64)
    if T.shape != (4, 4):
        raise ValueError(f"T must be (4,4), got {T.shape}")

    R_inv = T[:3, :3].T
    return make_T(R=R_inv, t=-R_inv @ T[:3, 3])


def compose_T(A: np.ndarray, B: np.ndarray) -> np.ndarray:
    """复合变换：先 B 再 A（即 A @ B）。"""

    A = np.asarray(A, dtype=np.float64)
    B = np.asarray(B, dtype=np.float64)
    if A.shape != (4, 4) or B.shape != (4, 4):
        raise ValueError(f"A,B must be (4,4), got {A.shape} and {B.shape}")
    return (A @ B).astype(np.float64)


def R_from_quat(q: np.ndarray) -> np.ndarray:
    """四元数 (x,y,z,w) -> 旋转矩阵。

    说明：
        全 0 四元数不是合法旋转，这里直接报错；调用方需要自己决定如何替换（例如换成单位四元数）。
    """

    q = np.asarray(q, dtype=np.float64).reshape(4)
    n = float(np.linalg.norm(q))
    if not np.isfinite(n) or n <= 0.0:
        raise ValueError(f"quaternion must be non-zero and finite, got {q.tolist()}")
    return np.asarray(Rotation.from_quat(q / n).as_matrix(), dtype=np.float64)


def quat_from_R(R: np.ndarray) -> np.ndarray:
    """旋转矩阵 -> 单位四元数 (x,y,z,w)。"""

    R = np.asarray(R, dtype=np.float64).reshape(3, 3)
    return np.asarray(Rotation.from_matrix(R).as_quat(), dtype=np.float64).reshape(4)


def rpy_from_R(R: np.ndarray) -> np.ndarray:
    """旋转矩阵 -> (roll, pitch, yaw)，弧度。"""

    R = np.asarray(R, dtype=np.float64).reshape(3, 3)
    return np.asarray(Rotation.from_matrix(R).as_euler("xyz", degrees=False), dtype=np.float64).reshape(3)


def quat_from_rpy(roll: float, pitch: float, yaw: float) -> np.ndarray:
    """(roll, pitch, yaw) -> 单位四元数 (x,y,z,w)。"""

    r = Rotation.from_euler("xyz", [float(roll), float(pitch), float(yaw)], degrees=False)
    return np.asarray(r.as_quat(), dtype=np.float64).reshape(4)
