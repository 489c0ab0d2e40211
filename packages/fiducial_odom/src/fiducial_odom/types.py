"""数据结构：位姿/刚体变换/检测结果/里程计输出。

说明：
- 本包只负责“检测结果 -> 世界系里程计”的几何融合，不依赖具体的传输层（例如 ROS）。
- 四元数统一使用 (x, y, z, w) 顺序，与 tf2 / scipy 保持一致。
- 刚体变换记作 T_dst_from_src：把 src 坐标系下的点变到 dst 坐标系。
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Iterable

import numpy as np

from fiducial_odom.transforms import R_from_quat, compose_T, invert_T, make_T, quat_from_R

# 单位四元数判定容差。
QUAT_NORM_TOL = 1e-6


def as_np_f64(x: np.ndarray | Iterable[float], shape: tuple[int, ...]) -> np.ndarray:
    """把输入转为 float64 ndarray 并校验形状。"""

    a = np.asarray(x, dtype=np.float64)
    a = a.reshape(shape)
    return a


def is_zero_quat(q: np.ndarray) -> bool:
    """四个分量是否严格全为 0（“未初始化”哨兵值）。"""

    q = np.asarray(q, dtype=np.float64).reshape(4)
    return bool(np.all(q == 0.0))


@dataclass(frozen=True, slots=True)
class CameraIntrinsics:
    """相机内参（OpenCV 口径）。

    Attributes:
        K: 相机内参矩阵 (3,3)。
        dist: 畸变参数 (N,)；若未知可传空或全 0。
    """

    K: np.ndarray
    dist: np.ndarray


@dataclass(frozen=True, slots=True)
class Transform3D:
    """刚体变换：平移 + 单位四元数（x, y, z, w）。

    约定：
        表示 T_dst_from_src，即 X_dst = R @ X_src + t。
    """

    translation: np.ndarray
    rotation: np.ndarray

    def __post_init__(self) -> None:
        object.__setattr__(self, "translation", as_np_f64(self.translation, (3,)))
        object.__setattr__(self, "rotation", as_np_f64(self.rotation, (4,)))

    @classmethod
    def identity(cls) -> "Transform3D":
        return cls(translation=np.zeros(3), rotation=np.array([0.0, 0.0, 0.0, 1.0]))

    @classmethod
    def from_matrix(cls, T: np.ndarray) -> "Transform3D":
        T = as_np_f64(T, (4, 4))
        return cls(translation=T[:3, 3].copy(), rotation=quat_from_R(T[:3, :3]))

    def as_matrix(self) -> np.ndarray:
        return make_T(R=R_from_quat(self.rotation), t=self.translation)

    def inverse(self) -> "Transform3D":
        return Transform3D.from_matrix(invert_T(self.as_matrix()))

    def compose(self, other: "Transform3D") -> "Transform3D":
        """复合：self ∘ other（先 other 再 self）。"""

        return Transform3D.from_matrix(compose_T(self.as_matrix(), other.as_matrix()))


@dataclass(frozen=True, slots=True)
class Pose3D:
    """带坐标系与时间戳的位姿。

    Attributes:
        position: (3,) 位置（米）。
        orientation: (4,) 四元数 (x, y, z, w)。必须为单位四元数；
            唯一例外是全 0 四元数，作为“尚未初始化”的哨兵值。
        frame_id: 位姿所在的坐标系名。
        stamp_s: 时间戳（秒）。
    """

    position: np.ndarray
    orientation: np.ndarray
    frame_id: str
    stamp_s: float

    def __post_init__(self) -> None:
        pos = as_np_f64(self.position, (3,))
        q = as_np_f64(self.orientation, (4,))
        if not is_zero_quat(q):
            n = float(np.linalg.norm(q))
            if not np.isfinite(n) or abs(n - 1.0) > QUAT_NORM_TOL:
                raise ValueError(f"orientation must be a unit quaternion (x,y,z,w), got norm={n}")
        object.__setattr__(self, "position", pos)
        object.__setattr__(self, "orientation", q)
        object.__setattr__(self, "stamp_s", float(self.stamp_s))

    def as_transform(self) -> Transform3D:
        """把位姿看作 T_frame_from_body。"""

        return Transform3D(translation=self.position, rotation=self.orientation)

    @classmethod
    def from_transform(cls, tf: Transform3D, *, frame_id: str, stamp_s: float) -> "Pose3D":
        return cls(position=tf.translation, orientation=tf.rotation, frame_id=frame_id, stamp_s=stamp_s)

    def to_dict(self) -> dict[str, Any]:
        return {
            "frame_id": self.frame_id,
            "stamp_s": float(self.stamp_s),
            "position": [float(v) for v in self.position],
            "orientation": [float(v) for v in self.orientation],
        }


@dataclass(frozen=True, slots=True)
class DetectionResult:
    """单个检测源的一次检测输出。

    说明：
    - marker_count == 0 表示“本源这一帧没看到可用的靶标”，此时 relative_pose 无意义（通常为 None）。
    - relative_pose 是相机坐标系下的靶标相对位姿，frame_id 为该相机的 frame。
    """

    marker_count: int
    relative_pose: Pose3D | None
    source_id: str

    def __post_init__(self) -> None:
        if int(self.marker_count) < 0:
            raise ValueError(f"marker_count must be >= 0, got {self.marker_count}")
        if int(self.marker_count) > 0 and self.relative_pose is None:
            raise ValueError("relative_pose is required when marker_count > 0")

    @property
    def found(self) -> bool:
        return int(self.marker_count) > 0


def diagonal_covariance(value: float) -> np.ndarray:
    """构造 6x6 对角协方差矩阵（占位常数）。"""

    v = float(value)
    if not np.isfinite(v) or v < 0:
        raise ValueError(f"covariance diagonal must be finite and >= 0, got {value}")
    return np.eye(6, dtype=np.float64) * v


@dataclass(frozen=True, slots=True)
class OdometryRecord:
    """一条里程计输出（对齐 nav_msgs/Odometry 的字段语义）。

    Attributes:
        stamp_s: 输出时间戳（秒）。
        frame_id: 位姿所在的固定坐标系（通常为 odom）。
        child_frame_id: 机体坐标系（通常为 footprint）。
        pose: 融合后的位姿。
        pose_covariance: (6,6) 对角协方差。
        twist_linear: (3,) 线速度（m/s）。
        twist_angular: (3,) roll/pitch/yaw 角速率（rad/s，欧拉角差分近似）。
        twist_covariance: (6,6) 对角协方差。
    """

    stamp_s: float
    frame_id: str
    child_frame_id: str
    pose: Pose3D
    pose_covariance: np.ndarray
    twist_linear: np.ndarray
    twist_angular: np.ndarray
    twist_covariance: np.ndarray

    def to_dict(self) -> dict[str, Any]:
        """转为可 JSON 序列化的 dict（协方差按 row-major 展平为 36 个数）。"""

        return {
            "stamp_s": float(self.stamp_s),
            "frame_id": self.frame_id,
            "child_frame_id": self.child_frame_id,
            "pose": self.pose.to_dict(),
            "pose_covariance": [float(v) for v in np.asarray(self.pose_covariance).reshape(-1)],
            "twist": {
                "linear": [float(v) for v in self.twist_linear],
                "angular": [float(v) for v in self.twist_angular],
            },
            "twist_covariance": [float(v) for v in np.asarray(self.twist_covariance).reshape(-1)],
        }


@dataclass(frozen=True, slots=True)
class FusionState:
    """跨周期保留的唯一状态：上一次被接受的融合位姿。

    说明：
    - 值对象：速度估计器返回新的 FusionState，而不是原地修改。
    - 只存在于进程内存中，不落盘。
    """

    last_accepted_pose: Pose3D | None = field(default=None)
