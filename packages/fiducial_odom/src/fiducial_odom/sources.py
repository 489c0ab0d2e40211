"""图像源：按需取一帧图像 + 对应的相机内参。

说明：
- 融合核心只依赖 `FrameSource.fetch()` 这个同步接口；取帧失败抛 SourceUnavailable。
- `VideoCaptureFrameSource` 是基于 OpenCV 的最小实现（USB 相机 / 视频文件 / 网络流）。
"""

from __future__ import annotations

import time
from dataclasses import dataclass
from typing import Any, Callable, Protocol

import cv2
import numpy as np

from fiducial_odom.errors import SourceUnavailable
from fiducial_odom.types import CameraIntrinsics


@dataclass(frozen=True)
class CameraFrame:
    """一帧图像及其元信息。"""

    image: np.ndarray
    intrinsics: CameraIntrinsics
    frame_id: str
    stamp_s: float


class FrameSource(Protocol):
    def fetch(self) -> CameraFrame:
        ...


class VideoCaptureFrameSource:
    """基于 cv2.VideoCapture 的图像源（首次 fetch 时才打开设备）。"""

    def __init__(
        self,
        *,
        source_id: str,
        device: int | str,
        intrinsics: CameraIntrinsics,
        frame_id: str,
        clock: Callable[[], float] = time.time,
        capture_factory: Callable[[Any], Any] = cv2.VideoCapture,
    ) -> None:
        self.source_id = str(source_id)
        self._device = device
        self._intrinsics = intrinsics
        self._frame_id = str(frame_id)
        self._clock = clock
        self._capture_factory = capture_factory
        self._cap: Any = None

    def _ensure_open(self) -> Any:
        if self._cap is None:
            cap = self._capture_factory(self._device)
            if not cap.isOpened():
                cap.release()
                raise SourceUnavailable(self.source_id, f"cannot open device {self._device!r}")
            self._cap = cap
        return self._cap

    def fetch(self) -> CameraFrame:
        cap = self._ensure_open()
        ok, image = cap.read()
        stamp = float(self._clock())
        if not ok or image is None:
            # 读失败后关闭，下次 fetch 重新打开设备。
            self.close()
            raise SourceUnavailable(self.source_id, "failed to grab frame")

        return CameraFrame(image=image, intrinsics=self._intrinsics, frame_id=self._frame_id, stamp_s=stamp)

    def close(self) -> None:
        if self._cap is not None:
            self._cap.release()
            self._cap = None

    def __enter__(self) -> "VideoCaptureFrameSource":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:  # noqa: ANN001
        self.close()
