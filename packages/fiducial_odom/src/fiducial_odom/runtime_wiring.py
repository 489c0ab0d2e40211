"""运行时装配：把配置变成 tf buffer / 检测源 / sink / 驱动器。

说明：
- 这里是 app/adapter 层，允许依赖 OpenCV 设备；融合核心（selector/compositor/velocity/driver）不依赖本模块。
"""

from __future__ import annotations

import logging
from contextlib import ExitStack
from pathlib import Path

from fiducial_odom.calib_io import load_camera_intrinsics_from_calib_json
from fiducial_odom.config import FiducialOdomConfig
from fiducial_odom.detector import ArucoMarkerDetector, CameraDetectionSource
from fiducial_odom.driver import FiducialOdometry
from fiducial_odom.sinks import LoggingOdometrySink, OdometrySink, open_jsonl_sink
from fiducial_odom.sources import VideoCaptureFrameSource
from fiducial_odom.tf_buffer import StaticTransformBuffer
from fiducial_odom.transforms import quat_from_rpy
from fiducial_odom.types import Transform3D


def build_transform_buffer(cfg: FiducialOdomConfig) -> StaticTransformBuffer:
    """按配置里的 transforms 段构建静态 tf 树。"""

    buf = StaticTransformBuffer()
    for tf in cfg.transforms:
        rotation = quat_from_rpy(*tf.rpy) if tf.rpy is not None else tf.rotation
        buf.set_transform(
            tf.parent,
            tf.child,
            Transform3D(translation=tf.translation, rotation=rotation),
        )
    return buf


def build_detection_sources(
    cfg: FiducialOdomConfig,
    *,
    stack: ExitStack,
    logger: logging.Logger,
) -> list[CameraDetectionSource]:
    """按 sensor_order 构建检测源；图像源注册到 stack，退出时统一释放。"""

    for sid in cfg.sensor_order:
        src_cfg = cfg.sources.get(sid)
        if src_cfg is None:
            raise ValueError(f"sensor_order 中的源 '{sid}' 没有对应的 sources 配置")
        if not src_cfg.calib_json:
            raise ValueError(f"sources.{sid}.calib_json 未设置（需要相机内参）")

    detector = ArucoMarkerDetector(
        dictionary=cfg.marker.dictionary,
        marker_size_m=float(cfg.marker.size_m),
        marker_ids=cfg.marker.marker_ids,
        logger=logger,
    )

    out: list[CameraDetectionSource] = []
    for sid in cfg.sensor_order:
        src_cfg = cfg.sources[sid]
        intr = load_camera_intrinsics_from_calib_json(
            calib_json_path=Path(src_cfg.calib_json).expanduser(),
            camera=src_cfg.calib_camera or sid,
        )
        frame_source = stack.enter_context(
            VideoCaptureFrameSource(
                source_id=sid,
                device=src_cfg.device,
                intrinsics=intr,
                frame_id=src_cfg.frame_id,
            )
        )
        out.append(CameraDetectionSource(source_id=sid, frame_source=frame_source, detector=detector))
    return out


def open_sink(cfg: FiducialOdomConfig, *, stack: ExitStack, logger: logging.Logger) -> OdometrySink:
    """jsonl_path 为空时输出到日志，否则写 JSONL。"""

    if not cfg.output.jsonl_path:
        return LoggingOdometrySink(logger)
    return stack.enter_context(
        open_jsonl_sink(
            Path(cfg.output.jsonl_path).expanduser(),
            flush_every_records=int(cfg.output.flush_every_records),
            flush_interval_s=float(cfg.output.flush_interval_s),
        )
    )


def build_driver(
    cfg: FiducialOdomConfig,
    *,
    stack: ExitStack,
    logger: logging.Logger,
) -> FiducialOdometry:
    return FiducialOdometry(
        sources=build_detection_sources(cfg, stack=stack, logger=logger),
        resolver=build_transform_buffer(cfg),
        sink=open_sink(cfg, stack=stack, logger=logger),
        frames=cfg.frames,
        pose_covariance_diag=float(cfg.pose_covariance_diag),
        twist_covariance_diag=float(cfg.twist_covariance_diag),
        logger=logger,
    )
