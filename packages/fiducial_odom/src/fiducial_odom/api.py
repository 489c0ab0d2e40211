"""fiducial_odom 对外稳定入口（public API）。

本包目标：
- 输入：若干冗余检测源（按优先级排序）+ tf 查询能力。
- 输出：odom 系下的里程计记录（位姿 + 速度 + 固定对角协方差）。

说明：
- 本包不负责传输层；图像采集/靶标检测只提供基于 OpenCV 的参考 adapter。
- 下游请只从 `fiducial_odom` / `fiducial_odom.api` 导入，避免耦合内部模块结构。
"""

from __future__ import annotations

from fiducial_odom.compositor import FusionFrames, compose_fused_pose, correct_footprint_axes
from fiducial_odom.config import (
    FiducialOdomConfig,
    MarkerConfig,
    OutputConfig,
    SourceConfig,
    StaticTransformConfig,
)
from fiducial_odom.config_yaml import fiducial_odom_config_from_dict, load_fiducial_odom_config
from fiducial_odom.driver import CyclePhase, CycleStats, FiducialOdometry
from fiducial_odom.errors import DegenerateTimestep, FiducialOdomError, SourceUnavailable, TransformUnavailable
from fiducial_odom.selector import DetectionSource, select_detection
from fiducial_odom.sinks import JsonlOdometrySink, LoggingOdometrySink, OdometrySink, open_jsonl_sink
from fiducial_odom.tf_buffer import StaticTransformBuffer, TransformResolver
from fiducial_odom.types import (
    CameraIntrinsics,
    DetectionResult,
    FusionState,
    OdometryRecord,
    Pose3D,
    Transform3D,
)
from fiducial_odom.velocity import DEFAULT_COVARIANCE_DIAG, estimate_odometry

__all__ = [
    "CameraIntrinsics",
    "CyclePhase",
    "CycleStats",
    "DEFAULT_COVARIANCE_DIAG",
    "DegenerateTimestep",
    "DetectionResult",
    "DetectionSource",
    "FiducialOdomConfig",
    "FiducialOdomError",
    "FiducialOdometry",
    "FusionFrames",
    "FusionState",
    "JsonlOdometrySink",
    "LoggingOdometrySink",
    "MarkerConfig",
    "OdometryRecord",
    "OdometrySink",
    "OutputConfig",
    "Pose3D",
    "SourceConfig",
    "SourceUnavailable",
    "StaticTransformBuffer",
    "StaticTransformConfig",
    "Transform3D",
    "TransformResolver",
    "TransformUnavailable",
    "compose_fused_pose",
    "correct_footprint_axes",
    "estimate_odometry",
    "fiducial_odom_config_from_dict",
    "load_fiducial_odom_config",
    "open_jsonl_sink",
    "select_detection",
]
