"""靶标检测：OpenCV ArUco 角点检测 + PnP，输出 DetectionResult。

说明：
- 检测算法本身不属于融合核心；核心只依赖 `DetectionSource.detect()`。
- 一帧里看到多个靶标时：marker_count 为可用靶标数，relative_pose 取检测器输出顺序中第一个解算成功的靶标。
- 依赖 OpenCV >= 4.7（`cv2.aruco.ArucoDetector`）。
"""

from __future__ import annotations

import logging
from typing import Iterable

import cv2
import numpy as np

from fiducial_odom.errors import SourceUnavailable
from fiducial_odom.logging_utils import default_logger
from fiducial_odom.pnp import solve_marker_pnp
from fiducial_odom.sources import FrameSource
from fiducial_odom.types import CameraIntrinsics, DetectionResult, Pose3D, Transform3D


class ArucoMarkerDetector:
    """ArUco 靶标检测器。"""

    def __init__(
        self,
        *,
        dictionary: str = "DICT_4X4_50",
        marker_size_m: float,
        marker_ids: Iterable[int] = (),
        logger: logging.Logger | None = None,
    ) -> None:
        aruco = getattr(cv2, "aruco", None)
        if aruco is None or not hasattr(aruco, "ArucoDetector"):
            raise RuntimeError("当前 OpenCV 不包含 cv2.aruco.ArucoDetector（需要 opencv-python>=4.7）")

        dict_id = getattr(aruco, str(dictionary), None)
        if not isinstance(dict_id, int) or not str(dictionary).startswith("DICT_"):
            raise ValueError(f"unknown aruco dictionary: {dictionary!r}")

        self.marker_size_m = float(marker_size_m)
        if not self.marker_size_m > 0:
            raise ValueError(f"marker_size_m must be positive, got {marker_size_m}")

        self._marker_ids = frozenset(int(i) for i in marker_ids)
        self._detector = aruco.ArucoDetector(aruco.getPredefinedDictionary(dict_id), aruco.DetectorParameters())
        self._logger = logger or default_logger()

    def detect_corners(self, image: np.ndarray) -> list[tuple[int, np.ndarray]]:
        """返回 [(marker_id, corners_px(4,2)), ...]，已按 marker_ids 过滤。"""

        img = np.asarray(image)
        gray = cv2.cvtColor(img, cv2.COLOR_BGR2GRAY) if img.ndim == 3 else img

        corners, ids, _rejected = self._detector.detectMarkers(gray)
        if ids is None or len(ids) == 0:
            return []

        out: list[tuple[int, np.ndarray]] = []
        for marker_id, c in zip(np.asarray(ids).reshape(-1), corners):
            mid = int(marker_id)
            if self._marker_ids and mid not in self._marker_ids:
                continue
            out.append((mid, np.asarray(c, dtype=np.float64).reshape(4, 2)))
        return out

    def detect(
        self,
        image: np.ndarray,
        intr: CameraIntrinsics,
        *,
        frame_id: str,
        stamp_s: float,
        source_id: str,
    ) -> DetectionResult:
        found = self.detect_corners(image)

        pose: Pose3D | None = None
        for mid, corners_px in found:
            if pose is not None:
                break
            try:
                pnp = solve_marker_pnp(corners_px=corners_px, intr=intr, marker_size_m=self.marker_size_m)
            except (RuntimeError, cv2.error) as exc:
                self._logger.debug("pnp failed for marker %d on %s: %s", mid, source_id, exc)
                continue
            pose = Pose3D.from_transform(
                Transform3D.from_matrix(pnp.T_cam_from_marker),
                frame_id=frame_id,
                stamp_s=stamp_s,
            )

        if pose is None:
            return DetectionResult(marker_count=0, relative_pose=None, source_id=source_id)
        return DetectionResult(marker_count=len(found), relative_pose=pose, source_id=source_id)


class CameraDetectionSource:
    """把“图像源 + 检测器”组合成一个检测源（选择器链条里的一个节点）。"""

    def __init__(self, *, source_id: str, frame_source: FrameSource, detector: ArucoMarkerDetector) -> None:
        self.source_id = str(source_id)
        self._frame_source = frame_source
        self._detector = detector

    def detect(self) -> DetectionResult:
        """取一帧并检测；OpenCV 拒绝该帧时按“源不可用”上报，由选择器回退到下一个源。"""

        frame = self._frame_source.fetch()
        try:
            return self._detector.detect(
                frame.image,
                frame.intrinsics,
                frame_id=frame.frame_id,
                stamp_s=frame.stamp_s,
                source_id=self.source_id,
            )
        except cv2.error as exc:
            raise SourceUnavailable(self.source_id, f"detector rejected frame: {exc}") from exc
