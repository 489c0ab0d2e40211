from __future__ import annotations

import numpy as np
import pytest

from fiducial_odom import (
    DetectionResult,
    FiducialOdometry,
    OdometryRecord,
    Pose3D,
    SourceUnavailable,
    StaticTransformBuffer,
    Transform3D,
    TransformUnavailable,
)
from fiducial_odom.driver import CyclePhase


class _ListSink:
    def __init__(self) -> None:
        self.records: list[OdometryRecord] = []

    def publish(self, record: OdometryRecord) -> None:
        self.records.append(record)


class _FailingSink:
    def publish(self, record: OdometryRecord) -> None:
        raise OSError("disk full")


class _ScriptedSource:
    """按脚本返回：None 表示 0 个靶标，float 表示在该时间戳看到 (0.5,0.1,0)，Exception 直接抛出。"""

    def __init__(self, source_id: str, script: list) -> None:
        self.source_id = source_id
        self._script = list(script)

    def detect(self) -> DetectionResult:
        item = self._script.pop(0) if self._script else None
        if isinstance(item, Exception):
            raise item
        if item is None:
            return DetectionResult(marker_count=0, relative_pose=None, source_id=self.source_id)
        pose = Pose3D(position=[0.5, 0.1, 0.0], orientation=[0, 0, 0, 1], frame_id="kinect_link", stamp_s=float(item))
        return DetectionResult(marker_count=1, relative_pose=pose, source_id=self.source_id)


class _FlakyResolver:
    """包一层 StaticTransformBuffer，可按需模拟 tf 不可用。"""

    def __init__(self, inner: StaticTransformBuffer) -> None:
        self.inner = inner
        self.fail = False

    def resolve(self, source_frame: str, target_frame: str, stamp_s: float) -> Transform3D:
        if self.fail:
            raise TransformUnavailable(source_frame, target_frame, "buffer not populated")
        return self.inner.resolve(source_frame, target_frame, stamp_s)


def _buffer() -> StaticTransformBuffer:
    buf = StaticTransformBuffer()
    buf.set_transform("footprint", "kinect_link", Transform3D.identity())
    buf.set_transform("odom", "bin_footprint", Transform3D(translation=[2, 0, 0], rotation=[0, 0, 0, 1]))
    return buf


def _driver(sources, *, resolver=None, sink=None) -> tuple[FiducialOdometry, _ListSink]:
    sink = sink if sink is not None else _ListSink()
    odom = FiducialOdometry(
        sources=sources,
        resolver=resolver if resolver is not None else _buffer(),
        sink=sink,
        clock=lambda: 1000.0,
    )
    return odom, sink


def test_no_detection_emits_nothing_and_keeps_state() -> None:
    odom, sink = _driver([_ScriptedSource("rear_cam", [None]), _ScriptedSource("kinect", [None])])

    assert odom.process_once() is None
    assert sink.records == []
    assert odom.state.last_accepted_pose is None
    assert odom.stats.no_detection == 1
    assert odom.phase is CyclePhase.IDLE


def test_fallback_source_result_is_fused_and_published() -> None:
    odom, sink = _driver([_ScriptedSource("rear_cam", [None]), _ScriptedSource("kinect", [2.0])])

    record = odom.process_once()

    assert record is not None
    assert sink.records == [record]
    assert np.allclose(record.pose.position, [1.5, 0.1, 0.0], atol=1e-12)
    assert record.frame_id == "odom"
    assert record.child_frame_id == "footprint"
    assert record.stamp_s == pytest.approx(1000.0)
    assert odom.state.last_accepted_pose is record.pose


def test_consecutive_cycles_produce_velocity() -> None:
    odom, sink = _driver([_ScriptedSource("kinect", [1.0, 3.0])])

    first = odom.process_once()
    second = odom.process_once()

    assert first is not None and second is not None
    # 位姿不变、dt=2s -> 零速度
    assert np.allclose(second.twist_linear, [0.0, 0.0, 0.0], atol=1e-12)
    assert len(sink.records) == 2


def test_transform_failure_abandons_cycle_without_touching_state() -> None:
    resolver = _FlakyResolver(_buffer())
    odom, sink = _driver([_ScriptedSource("kinect", [1.0, 2.0])], resolver=resolver)

    first = odom.process_once()
    resolver.fail = True
    assert odom.process_once() is None

    assert odom.state.last_accepted_pose is first.pose
    assert len(sink.records) == 1
    assert odom.stats.transform_unavailable == 1


def test_unavailable_source_falls_back_to_next_source() -> None:
    odom, sink = _driver(
        [_ScriptedSource("rear_cam", [SourceUnavailable("rear_cam", "timeout")]), _ScriptedSource("kinect", [1.0])]
    )

    record = odom.process_once()

    assert record is not None
    assert sink.records == [record]
    assert odom.stats.source_unavailable == 0


def test_cycle_is_abandoned_when_every_source_is_unavailable() -> None:
    odom, sink = _driver(
        [
            _ScriptedSource("rear_cam", [SourceUnavailable("rear_cam", "timeout")]),
            _ScriptedSource("kinect", [SourceUnavailable("kinect", "unplugged")]),
        ]
    )

    assert odom.process_once() is None
    assert sink.records == []
    assert odom.state.last_accepted_pose is None
    assert odom.stats.source_unavailable == 1
    assert odom.phase is CyclePhase.IDLE


def test_identical_timestamps_skip_emission_and_keep_state() -> None:
    odom, sink = _driver([_ScriptedSource("kinect", [5.0, 5.0])])

    first = odom.process_once()
    assert odom.process_once() is None

    assert odom.state.last_accepted_pose is first.pose
    assert len(sink.records) == 1
    assert odom.stats.degenerate_timestep == 1


def test_state_is_not_updated_when_publish_fails() -> None:
    odom, _ = _driver([_ScriptedSource("kinect", [1.0])], sink=_FailingSink())

    with pytest.raises(OSError):
        odom.process_once()

    assert odom.state.last_accepted_pose is None
    assert odom.phase is CyclePhase.IDLE


def test_cycles_are_not_reentrant() -> None:
    holder: dict[str, FiducialOdometry] = {}

    class _ReentrantSource:
        source_id = "rear_cam"

        def detect(self) -> DetectionResult:
            holder["odom"].process_once()
            raise AssertionError("unreachable")

    odom, _ = _driver([_ReentrantSource()])
    holder["odom"] = odom

    with pytest.raises(RuntimeError, match="re-entrant"):
        odom.process_once()
    assert odom.phase is CyclePhase.IDLE


def test_run_ticks_at_fixed_rate() -> None:
    now = {"t": 0.0}
    sleeps: list[float] = []

    def _sleep(dt: float) -> None:
        sleeps.append(dt)
        now["t"] += dt

    odom, sink = _driver([_ScriptedSource("kinect", [1.0, 2.0, 3.0])])

    n = odom.run(5.0, max_cycles=3, sleep=_sleep, monotonic=lambda: now["t"])

    assert n == 3
    assert sleeps == pytest.approx([0.2, 0.2])
    assert len(sink.records) == 3
    assert odom.stats.cycles == 3


def test_run_rejects_non_positive_rate() -> None:
    odom, _ = _driver([_ScriptedSource("kinect", [])])
    with pytest.raises(ValueError):
        odom.run(0.0, max_cycles=1)


def test_requires_sources() -> None:
    with pytest.raises(ValueError):
        _driver([])
