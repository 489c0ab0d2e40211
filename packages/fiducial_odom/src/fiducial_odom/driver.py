"""融合周期驱动：每个 tick 跑一次 选择检测源 -> 位姿合成 -> 速度估计 -> 输出。

状态机：
- IDLE：等待下一个 tick。
- FUSING：一个周期进行中。
- 周期结束（无论成败）一律回到 IDLE；周期不可重入。

状态（FusionState）只由本类持有，并且只在 sink.publish() 返回之后才替换为新值。
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Sequence

from fiducial_odom.compositor import FusionFrames, compose_fused_pose
from fiducial_odom.errors import DegenerateTimestep, SourceUnavailable, TransformUnavailable
from fiducial_odom.logging_utils import default_logger
from fiducial_odom.selector import DetectionSource, select_detection
from fiducial_odom.sinks import OdometrySink
from fiducial_odom.tf_buffer import TransformResolver
from fiducial_odom.types import FusionState, OdometryRecord
from fiducial_odom.velocity import DEFAULT_COVARIANCE_DIAG, estimate_odometry


class CyclePhase(str, Enum):
    IDLE = "idle"
    FUSING = "fusing"


@dataclass
class CycleStats:
    """周期计数（用于退出时的摘要与排障）。"""

    cycles: int = 0
    emitted: int = 0
    no_detection: int = 0
    transform_unavailable: int = 0
    source_unavailable: int = 0
    degenerate_timestep: int = 0

    def summary(self) -> str:
        return (
            f"cycles={self.cycles} emitted={self.emitted} no_detection={self.no_detection} "
            f"tf_fail={self.transform_unavailable} source_fail={self.source_unavailable} "
            f"degenerate_dt={self.degenerate_timestep}"
        )


class FiducialOdometry:
    """靶标里程计的周期驱动器。

    用法：
        odom = FiducialOdometry(sources=[rear, kinect], resolver=buf, sink=sink)
        odom.run(rate_hz=5.0)
    """

    def __init__(
        self,
        *,
        sources: Sequence[DetectionSource],
        resolver: TransformResolver,
        sink: OdometrySink,
        frames: FusionFrames | None = None,
        pose_covariance_diag: float = DEFAULT_COVARIANCE_DIAG,
        twist_covariance_diag: float = DEFAULT_COVARIANCE_DIAG,
        clock: Callable[[], float] = time.time,
        logger: logging.Logger | None = None,
    ) -> None:
        if not sources:
            raise ValueError("at least one detection source is required")

        self._sources = list(sources)
        self._resolver = resolver
        self._sink = sink
        self._frames = frames or FusionFrames()
        self._pose_cov = float(pose_covariance_diag)
        self._twist_cov = float(twist_covariance_diag)
        self._clock = clock
        self._logger = logger or default_logger()

        self._state = FusionState()
        self._phase = CyclePhase.IDLE
        self.stats = CycleStats()

    @property
    def state(self) -> FusionState:
        return self._state

    @property
    def phase(self) -> CyclePhase:
        return self._phase

    def process_once(self) -> OdometryRecord | None:
        """执行一个融合周期；成功时返回已发布的记录，否则返回 None。"""

        if self._phase is not CyclePhase.IDLE:
            raise RuntimeError("fusion cycle is not re-entrant")

        self._phase = CyclePhase.FUSING
        self.stats.cycles += 1
        try:
            return self._fuse()
        finally:
            self._phase = CyclePhase.IDLE

    def _fuse(self) -> OdometryRecord | None:
        try:
            detection = select_detection(self._sources, logger=self._logger)
            if detection is None:
                self.stats.no_detection += 1
                return None

            pose = compose_fused_pose(
                detection,
                resolver=self._resolver,
                frames=self._frames,
                logger=self._logger,
            )
            record, new_state = estimate_odometry(
                self._state,
                pose,
                odom_frame=self._frames.odom_frame,
                child_frame=self._frames.footprint_frame,
                stamp_s=float(self._clock()),
                pose_covariance_diag=self._pose_cov,
                twist_covariance_diag=self._twist_cov,
                logger=self._logger,
            )
        except SourceUnavailable as exc:
            self.stats.source_unavailable += 1
            self._logger.warning("cycle skipped: %s", exc)
            return None
        except TransformUnavailable as exc:
            self.stats.transform_unavailable += 1
            self._logger.warning("cycle skipped: %s", exc)
            return None
        except DegenerateTimestep as exc:
            self.stats.degenerate_timestep += 1
            self._logger.debug("cycle skipped: %s", exc)
            return None

        self._sink.publish(record)
        self._state = new_state
        self.stats.emitted += 1
        return record

    def run(
        self,
        rate_hz: float,
        *,
        max_cycles: int | None = None,
        sleep: Callable[[float], None] = time.sleep,
        monotonic: Callable[[], float] = time.monotonic,
    ) -> int:
        """按固定频率循环执行 process_once()。

        说明：
            每个周期结束后睡到下一个 tick；若周期本身超时，则不补跑，直接从当前时刻重新计时。

        Returns:
            实际执行的周期数。
        """

        rate = float(rate_hz)
        if not rate > 0:
            raise ValueError(f"rate_hz must be > 0, got {rate_hz}")
        period = 1.0 / rate

        done = 0
        next_t = monotonic() + period
        while max_cycles is None or done < int(max_cycles):
            self.process_once()
            done += 1
            if max_cycles is not None and done >= int(max_cycles):
                break

            remaining = next_t - monotonic()
            if remaining > 0:
                sleep(remaining)
                next_t += period
            else:
                next_t = monotonic() + period

        return done
