"""速度估计：上一次被接受的位姿 P0 与当前融合位姿 P1 的差分。

算法：
- Δ = P0^-1 ∘ P1（P1 相对 P0 的刚体变换）。
- 线速度 = Δ.translation / dt。
- 角速度 = rpy(Δ.rotation) / dt：把旋转增量分解成 roll/pitch/yaw 后逐个除以 dt。
  这只是小角度近似，不是真正的角速度矢量积分；dt 大或旋转大时不要把它当作精确值。

冷启动：
- 没有 P0 时使用默认位姿：原点、全 0 四元数、时间戳 0。
- P0 的四元数严格全 0 时替换为单位四元数 (0,0,0,1) 再求差分。

dt <= 0 时抛 DegenerateTimestep：不输出，也不更新状态。
"""

from __future__ import annotations

import logging
import math

import numpy as np

from fiducial_odom.errors import DegenerateTimestep
from fiducial_odom.logging_utils import default_logger
from fiducial_odom.transforms import rpy_from_R
from fiducial_odom.types import FusionState, OdometryRecord, Pose3D, diagonal_covariance, is_zero_quat

DEFAULT_COVARIANCE_DIAG = 1e-1

IDENTITY_QUAT = np.array([0.0, 0.0, 0.0, 1.0], dtype=np.float64)


def bootstrap_previous_pose(state: FusionState, *, frame_id: str) -> Pose3D:
    """取出用于求差分的 P0（必要时套用冷启动规则）。"""

    prev = state.last_accepted_pose
    if prev is None:
        prev = Pose3D(position=np.zeros(3), orientation=np.zeros(4), frame_id=frame_id, stamp_s=0.0)

    if is_zero_quat(prev.orientation):
        prev = Pose3D(
            position=prev.position,
            orientation=IDENTITY_QUAT,
            frame_id=prev.frame_id,
            stamp_s=prev.stamp_s,
        )
    return prev


def estimate_odometry(
    state: FusionState,
    pose: Pose3D,
    *,
    odom_frame: str,
    child_frame: str,
    stamp_s: float | None = None,
    pose_covariance_diag: float = DEFAULT_COVARIANCE_DIAG,
    twist_covariance_diag: float = DEFAULT_COVARIANCE_DIAG,
    logger: logging.Logger | None = None,
) -> tuple[OdometryRecord, FusionState]:
    """由新的融合位姿生成里程计输出，并返回新的 FusionState。

    Args:
        state: 当前状态（不会被修改）。
        pose: 当前融合位姿 P1。
        odom_frame: 输出的 frame_id。
        child_frame: 输出的 child_frame_id。
        stamp_s: 输出时间戳；None 时使用 pose.stamp_s。
        pose_covariance_diag: 位姿协方差对角常数。
        twist_covariance_diag: 速度协方差对角常数。
        logger: 可选 logger。

    Returns:
        (record, new_state)，new_state.last_accepted_pose 为 pose。

    Raises:
        DegenerateTimestep: dt <= 0 或非有限值。
    """

    log = logger or default_logger()
    prev = bootstrap_previous_pose(state, frame_id=pose.frame_id)

    dt = float(pose.stamp_s) - float(prev.stamp_s)
    if not math.isfinite(dt) or dt <= 0.0:
        raise DegenerateTimestep(dt)

    T_delta = prev.as_transform().inverse().compose(pose.as_transform()).as_matrix()
    linear_delta = T_delta[:3, 3]
    rpy_delta = rpy_from_R(T_delta[:3, :3])
    log.debug(
        "deltas %.6f %.6f %.6f rpy %.6f %.6f %.6f dt %.6f",
        float(linear_delta[0]),
        float(linear_delta[1]),
        float(linear_delta[2]),
        float(rpy_delta[0]),
        float(rpy_delta[1]),
        float(rpy_delta[2]),
        dt,
    )

    record = OdometryRecord(
        stamp_s=float(pose.stamp_s if stamp_s is None else stamp_s),
        frame_id=str(odom_frame),
        child_frame_id=str(child_frame),
        pose=pose,
        pose_covariance=diagonal_covariance(pose_covariance_diag),
        twist_linear=np.asarray(linear_delta / dt, dtype=np.float64),
        twist_angular=np.asarray(rpy_delta / dt, dtype=np.float64),
        twist_covariance=diagonal_covariance(twist_covariance_diag),
    )
    return record, FusionState(last_accepted_pose=pose)
