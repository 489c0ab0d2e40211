"""fiducial_odom 的配置（dataclass + 默认值）。

约定：
    - 所有字段都有默认值；YAML/JSON 只需要写要覆盖的部分（见 `fiducial_odom.config_yaml`）。
    - 默认值与原先的节点参数一致：camera_link / footprint / bin_footprint / odom，5 Hz。
    - 协方差对角常数只是“传感器不确定度”的占位值，保持可配置，不做推导。
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field

from fiducial_odom.compositor import FusionFrames
from fiducial_odom.tf_buffer import validate_frame_id


@dataclass(frozen=True)
class SourceConfig:
    """单个相机源（运行时 adapter 使用）。

    属性说明：
        device: cv2.VideoCapture 的设备号或视频路径/URL。
        frame_id: 该相机的坐标系名（检测位姿的 frame_id）。
        calib_json: 标定 JSON 路径（cameras -> {K, dist}）。
        calib_camera: 标定 JSON 中的相机 key；为空时使用 source id。
    """

    device: int | str = 0
    frame_id: str = "camera_link"
    calib_json: str | None = None
    calib_camera: str = ""


@dataclass(frozen=True)
class MarkerConfig:
    """ArUco 靶标配置。

    属性说明：
        dictionary: cv2.aruco 预定义字典名（例如 DICT_4X4_50）。
        size_m: 靶标边长（米）。
        marker_ids: 只接受这些 id；为空表示接受全部。
    """

    dictionary: str = "DICT_4X4_50"
    size_m: float = 0.2
    marker_ids: tuple[int, ...] = ()


@dataclass(frozen=True)
class StaticTransformConfig:
    """静态变换：T_parent_from_child。

    旋转二选一：rotation 为 (x, y, z, w) 四元数；或 rpy 为 (roll, pitch, yaw) 弧度
    （与 static_transform_publisher 的写法一致）。给了 rpy 时 rotation 必须保持默认值。
    """

    parent: str
    child: str
    translation: tuple[float, float, float] = (0.0, 0.0, 0.0)
    rotation: tuple[float, float, float, float] = (0.0, 0.0, 0.0, 1.0)
    rpy: tuple[float, float, float] | None = None


@dataclass(frozen=True)
class OutputConfig:
    """输出配置：jsonl_path 为空时输出到日志。"""

    jsonl_path: str | None = None
    flush_every_records: int = 1
    flush_interval_s: float = 0.0


@dataclass(frozen=True)
class FiducialOdomConfig:
    """靶标里程计的总配置。"""

    camera_frame: str = "camera_link"
    footprint_frame: str = "footprint"
    bin_frame: str = "bin_footprint"
    odom_frame: str = "odom"
    rate_hz: float = 5.0
    debug_logging: bool = False
    sensor_order: tuple[str, ...] = ("rear_cam", "kinect")

    pose_covariance_diag: float = 1e-1
    twist_covariance_diag: float = 1e-1

    sources: dict[str, SourceConfig] = field(default_factory=dict)
    marker: MarkerConfig = field(default_factory=MarkerConfig)
    transforms: tuple[StaticTransformConfig, ...] = ()
    output: OutputConfig = field(default_factory=OutputConfig)

    @property
    def frames(self) -> FusionFrames:
        return FusionFrames(
            camera_frame=self.camera_frame,
            footprint_frame=self.footprint_frame,
            bin_frame=self.bin_frame,
            odom_frame=self.odom_frame,
        )

    def validate(self) -> "FiducialOdomConfig":
        """启动期校验；不合法时抛 ValueError（致命配置错误）。"""

        _ = self.frames

        rate = float(self.rate_hz)
        if not math.isfinite(rate) or rate <= 0:
            raise ValueError(f"rate_hz must be > 0, got {self.rate_hz}")

        order = list(self.sensor_order)
        if not order:
            raise ValueError("sensor_order must not be empty")
        if len(set(order)) != len(order):
            raise ValueError(f"sensor_order has duplicates: {order}")
        for sid in order:
            if not str(sid).strip():
                raise ValueError("sensor_order entries must be non-empty")

        for name in ("pose_covariance_diag", "twist_covariance_diag"):
            v = float(getattr(self, name))
            if not math.isfinite(v) or v < 0:
                raise ValueError(f"{name} must be finite and >= 0, got {v}")

        for sid, src in self.sources.items():
            validate_frame_id(src.frame_id, name=f"sources.{sid}.frame_id")

        if not float(self.marker.size_m) > 0:
            raise ValueError(f"marker.size_m must be > 0, got {self.marker.size_m}")

        for i, tf in enumerate(self.transforms):
            validate_frame_id(tf.parent, name=f"transforms[{i}].parent")
            validate_frame_id(tf.child, name=f"transforms[{i}].child")
            if len(tf.translation) != 3 or len(tf.rotation) != 4:
                raise ValueError(f"transforms[{i}] needs 3 translation and 4 rotation values")
            if tf.rpy is not None:
                if len(tf.rpy) != 3:
                    raise ValueError(f"transforms[{i}].rpy needs 3 values (roll, pitch, yaw)")
                if tuple(float(v) for v in tf.rotation) != (0.0, 0.0, 0.0, 1.0):
                    raise ValueError(f"transforms[{i}] sets both rotation and rpy")

        if int(self.output.flush_every_records) < 0:
            raise ValueError("output.flush_every_records must be >= 0")

        return self
