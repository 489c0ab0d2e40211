from __future__ import annotations

import math

import numpy as np
import pytest

from fiducial_odom import (
    DetectionResult,
    FusionFrames,
    Pose3D,
    StaticTransformBuffer,
    Transform3D,
    TransformUnavailable,
    compose_fused_pose,
)
from fiducial_odom.compositor import correct_footprint_axes
from fiducial_odom.transforms import R_from_quat, quat_from_rpy, rpy_from_R

FRAMES = FusionFrames()


def _buffer(*, cam_in_fp: Transform3D | None = None, bin_in_odom: Transform3D | None = None) -> StaticTransformBuffer:
    buf = StaticTransformBuffer()
    buf.set_transform("footprint", "kinect_link", cam_in_fp or Transform3D.identity())
    buf.set_transform("odom", "bin_footprint", bin_in_odom or Transform3D(translation=[2, 0, 0], rotation=[0, 0, 0, 1]))
    return buf


def _detection(x: float, y: float, z: float, *, stamp_s: float = 12.5) -> DetectionResult:
    pose = Pose3D(position=[x, y, z], orientation=[0, 0, 0, 1], frame_id="kinect_link", stamp_s=stamp_s)
    return DetectionResult(marker_count=1, relative_pose=pose, source_id="kinect")


def test_footprint_axis_correction_negates_y_and_z() -> None:
    tf = Transform3D(translation=[1.0, 2.0, 3.0], rotation=quat_from_rpy(0.1, 0.2, 0.3))

    out = correct_footprint_axes(tf)

    assert np.allclose(out.translation, [1.0, -2.0, -3.0])
    assert np.allclose(out.rotation, tf.rotation)


def test_scenario_identity_footprint_and_bin_offset() -> None:
    fused = compose_fused_pose(_detection(0.5, 0.1, 0.0), resolver=_buffer(), frames=FRAMES)

    # corrected (0.5,-0.1,0) -> bin^-1 ∘ corrected = (-1.5,-0.1,0) -> negate -> (1.5,0.1,0)
    assert np.allclose(fused.position, [1.5, 0.1, 0.0], atol=1e-12)
    assert np.allclose(R_from_quat(fused.orientation), np.eye(3), atol=1e-12)
    assert fused.frame_id == "camera_link"
    assert fused.stamp_s == pytest.approx(12.5)


def test_footprint_transform_applied_before_sign_correction() -> None:
    cam_in_fp = Transform3D(translation=[0.3, 0.0, 0.0], rotation=[0, 0, 0, 1])

    fused = compose_fused_pose(_detection(0.5, 0.1, 0.0), resolver=_buffer(cam_in_fp=cam_in_fp), frames=FRAMES)

    # footprint 内 (0.8,0.1,0) -> 修正 (0.8,-0.1,0) -> 相对 bin (-1.2,-0.1,0) -> 取反
    assert np.allclose(fused.position, [1.2, 0.1, 0.0], atol=1e-12)


def test_rotated_bin_anchor() -> None:
    bin_in_odom = Transform3D(translation=[2.0, 0.0, 0.0], rotation=quat_from_rpy(0.0, 0.0, math.pi / 2))

    fused = compose_fused_pose(_detection(0.5, 0.1, 0.0), resolver=_buffer(bin_in_odom=bin_in_odom), frames=FRAMES)

    # bin^-1 = Rz(-90), t=(0,2,0)；Rz(-90)(0.5,-0.1,0) + (0,2,0) = (-0.1,1.5,0)；取反 -> (0.1,-1.5,0)
    assert np.allclose(fused.position, [0.1, -1.5, 0.0], atol=1e-12)
    assert rpy_from_R(R_from_quat(fused.orientation))[2] == pytest.approx(-math.pi / 2, abs=1e-12)


def test_missing_footprint_transform_raises() -> None:
    buf = StaticTransformBuffer()
    buf.set_transform("odom", "bin_footprint", Transform3D.identity())

    with pytest.raises(TransformUnavailable):
        compose_fused_pose(_detection(0.5, 0.1, 0.0), resolver=buf, frames=FRAMES)


def test_missing_bin_transform_raises() -> None:
    buf = StaticTransformBuffer()
    buf.set_transform("footprint", "kinect_link", Transform3D.identity())

    with pytest.raises(TransformUnavailable):
        compose_fused_pose(_detection(0.5, 0.1, 0.0), resolver=buf, frames=FRAMES)


def test_requires_a_detection_with_markers() -> None:
    empty = DetectionResult(marker_count=0, relative_pose=None, source_id="kinect")
    with pytest.raises(ValueError):
        compose_fused_pose(empty, resolver=_buffer(), frames=FRAMES)


def test_frames_reject_malformed_names() -> None:
    with pytest.raises(ValueError):
        FusionFrames(odom_frame="/odom")
