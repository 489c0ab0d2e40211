"""位姿合成：相机系下的靶标相对位姿 -> odom 系下的机器人位姿。

变换链条（顺序与符号约定是固定契约，不要按“物理直觉”改动）：
1. T_fp_from_cam（tf 查询）把检测位姿转到 footprint 系：processed = T_fp_from_cam ∘ pose_cam。
2. 视觉/车体坐标系手性不一致：processed 平移的 y、z 取反。
3. tf 查询 T_odom_from_bin（bin 在 odom 中的锚点）。
4. delta = T_odom_from_bin^-1 ∘ processed。
5. delta 平移的 x、y、z 全部取反（“机器人相对 bin” 与 “bin 相对机器人” 的对偶）。
6. 输出位姿：时间戳沿用检测结果，frame_id 为相机/车体系名。

任一 tf 查询失败都会抛 TransformUnavailable，调用方放弃本周期。
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

import numpy as np

from fiducial_odom.logging_utils import default_logger
from fiducial_odom.tf_buffer import TransformResolver, validate_frame_id
from fiducial_odom.types import DetectionResult, Pose3D, Transform3D

# 步骤 2：footprint 系下的平移符号修正。
FOOTPRINT_AXIS_SIGNS = np.array([1.0, -1.0, -1.0], dtype=np.float64)
# 步骤 5：相对 bin 的平移整体取反。
RELATIVE_AXIS_SIGNS = np.array([-1.0, -1.0, -1.0], dtype=np.float64)


@dataclass(frozen=True, slots=True)
class FusionFrames:
    """融合链条用到的坐标系名。"""

    camera_frame: str = "camera_link"
    footprint_frame: str = "footprint"
    bin_frame: str = "bin_footprint"
    odom_frame: str = "odom"

    def __post_init__(self) -> None:
        validate_frame_id(self.camera_frame, name="camera_frame")
        validate_frame_id(self.footprint_frame, name="footprint_frame")
        validate_frame_id(self.bin_frame, name="bin_frame")
        validate_frame_id(self.odom_frame, name="odom_frame")


def _fmt_pose(tf: Transform3D) -> str:
    t = tf.translation
    q = tf.rotation
    return (
        f"{t[0]:.6f} {t[1]:.6f} {t[2]:.6f} "
        f"{q[0]:.6f} {q[1]:.6f} {q[2]:.6f} {q[3]:.6f}"
    )


def correct_footprint_axes(tf: Transform3D) -> Transform3D:
    """步骤 2：平移 y、z 取反，旋转不变。"""

    return Transform3D(translation=tf.translation * FOOTPRINT_AXIS_SIGNS, rotation=tf.rotation)


def compose_fused_pose(
    detection: DetectionResult,
    *,
    resolver: TransformResolver,
    frames: FusionFrames,
    logger: logging.Logger | None = None,
) -> Pose3D:
    """把一次有效检测合成为 odom 系下的融合位姿。

    Args:
        detection: marker_count > 0 的检测结果。
        resolver: tf 查询接口。
        frames: 坐标系名集合。
        logger: 可选 logger；中间量在 DEBUG 级别输出。

    Returns:
        融合后的 Pose3D。

    Raises:
        ValueError: detection 没有有效靶标。
        TransformUnavailable: 任一 tf 查询失败。
    """

    if not detection.found or detection.relative_pose is None:
        raise ValueError("compose_fused_pose requires a detection with marker_count > 0")

    log = logger or default_logger()
    raw = detection.relative_pose
    stamp = float(raw.stamp_s)

    log.debug("unprocessed data %s %s", raw.frame_id, _fmt_pose(raw.as_transform()))

    T_fp_from_cam = resolver.resolve(raw.frame_id, frames.footprint_frame, stamp)
    processed = T_fp_from_cam.compose(raw.as_transform())
    processed = correct_footprint_axes(processed)
    log.debug("processed data %s %s", frames.footprint_frame, _fmt_pose(processed))

    T_odom_from_bin = resolver.resolve(frames.bin_frame, frames.odom_frame, stamp)
    log.debug("relative transform %s", _fmt_pose(T_odom_from_bin))

    delta = T_odom_from_bin.inverse().compose(processed)
    delta = Transform3D(translation=delta.translation * RELATIVE_AXIS_SIGNS, rotation=delta.rotation)

    fused = Pose3D.from_transform(delta, frame_id=frames.camera_frame, stamp_s=stamp)
    log.debug("relative data %s %s", fused.frame_id, _fmt_pose(delta))
    return fused
