"""检测源选择：按顺序回退（fallback chain），取第一个看到靶标的源。

规则：
- 严格短路：源 A 看到靶标（marker_count > 0）就不再调用后面的源。
- 不做投票/融合：每个周期只使用一个源的结果。
- 所有源都是 0 个靶标时返回 None（“这一周期什么都没看到”，不是错误）。
- 某个源抛 SourceUnavailable 时记 WARNING 并回退到下一个源；
  只有链条上每个源都不可用时才把最后一个 SourceUnavailable 向上传播，本周期放弃。
"""

from __future__ import annotations

import logging
from typing import Protocol, Sequence

from fiducial_odom.errors import SourceUnavailable
from fiducial_odom.logging_utils import default_logger
from fiducial_odom.types import DetectionResult


class DetectionSource(Protocol):
    """单个检测源：一次调用 = 取一帧 + 做一次靶标检测。"""

    source_id: str

    def detect(self) -> DetectionResult:
        ...


def select_detection(
    sources: Sequence[DetectionSource],
    *,
    logger: logging.Logger | None = None,
) -> DetectionResult | None:
    """依次调用检测源，返回第一个 marker_count > 0 的结果。

    Raises:
        ValueError: sources 为空。
        SourceUnavailable: 所有源都不可用。
    """

    if not sources:
        raise ValueError("at least one detection source is required")

    log = logger or default_logger()
    last_error: SourceUnavailable | None = None
    reachable = 0
    for src in sources:
        sid = getattr(src, "source_id", "?")
        try:
            result = src.detect()
        except SourceUnavailable as exc:
            log.warning("%s, trying next source", exc)
            last_error = exc
            continue

        reachable += 1
        if result.found:
            log.debug("detection from %s: %d marker(s)", result.source_id, int(result.marker_count))
            return result
        log.debug("no marker from %s, trying next source", sid)

    if reachable == 0 and last_error is not None:
        raise last_error
    return None
