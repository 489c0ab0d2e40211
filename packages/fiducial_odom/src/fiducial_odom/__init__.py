"""fiducial_odom：把间歇、带噪的靶标检测融合成连续的里程计（位姿 + 速度）。

说明：
- 对外 API 仅从 `fiducial_odom.api` 暴露，避免下游耦合内部模块结构。
"""

from fiducial_odom.api import (
    CameraIntrinsics,
    DetectionResult,
    DegenerateTimestep,
    FiducialOdomConfig,
    FiducialOdometry,
    FusionFrames,
    FusionState,
    JsonlOdometrySink,
    OdometryRecord,
    Pose3D,
    SourceUnavailable,
    StaticTransformBuffer,
    Transform3D,
    TransformUnavailable,
    compose_fused_pose,
    estimate_odometry,
    load_fiducial_odom_config,
    select_detection,
)

__all__ = [
    "CameraIntrinsics",
    "DetectionResult",
    "DegenerateTimestep",
    "FiducialOdomConfig",
    "FiducialOdometry",
    "FusionFrames",
    "FusionState",
    "JsonlOdometrySink",
    "OdometryRecord",
    "Pose3D",
    "SourceUnavailable",
    "StaticTransformBuffer",
    "Transform3D",
    "TransformUnavailable",
    "compose_fused_pose",
    "estimate_odometry",
    "load_fiducial_odom_config",
    "select_detection",
]
