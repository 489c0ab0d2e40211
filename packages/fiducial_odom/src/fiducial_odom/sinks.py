"""里程计输出端（Odometry Sink）。

约定：
- publish() 是 fire-and-forget：融合核心不等待任何确认。
- 传输层（ROS 话题等）不在本包内；这里提供 JSONL 落盘与日志两种实现。
"""

from __future__ import annotations

import json
import logging
import time
from contextlib import contextmanager
from pathlib import Path
from typing import IO, Iterator, Protocol

from fiducial_odom.logging_utils import default_logger
from fiducial_odom.types import OdometryRecord


class OdometrySink(Protocol):
    def publish(self, record: OdometryRecord) -> None:
        ...


def _json_text(obj: dict) -> str:
    return json.dumps(obj, ensure_ascii=False, separators=(",", ":"))


class JsonlOdometrySink:
    """JSONL 输出：每条 OdometryRecord 一行，支持按条数/按时间间隔 flush。"""

    def __init__(
        self,
        *,
        f: IO[str],
        flush_every_records: int = 1,
        flush_interval_s: float = 0.0,
    ) -> None:
        self._f = f
        self._flush_every_records = int(flush_every_records)
        self._flush_interval_s = float(flush_interval_s)
        self._records_since_flush = 0
        self._last_flush_t = time.monotonic()

    def publish(self, record: OdometryRecord) -> None:
        self._f.write(_json_text(record.to_dict()))
        self._f.write("\n")
        self._records_since_flush += 1

        need_flush_by_count = (
            self._flush_every_records > 0
            and self._records_since_flush >= self._flush_every_records
        )
        need_flush_by_time = False
        if self._flush_interval_s > 0:
            need_flush_by_time = (time.monotonic() - self._last_flush_t) >= self._flush_interval_s

        if need_flush_by_count or need_flush_by_time:
            self.flush()

    def flush(self) -> None:
        self._f.flush()
        self._records_since_flush = 0
        self._last_flush_t = time.monotonic()


class LoggingOdometrySink:
    """把每条记录打成一行 INFO 日志（未配置 JSONL 输出时的默认 sink）。"""

    def __init__(self, logger: logging.Logger | None = None) -> None:
        self._logger = logger or default_logger()

    def publish(self, record: OdometryRecord) -> None:
        p = record.pose.position
        v = record.twist_linear
        w = record.twist_angular
        self._logger.info(
            "odom t=%.3f pos=(%.3f, %.3f, %.3f) lin=(%.3f, %.3f, %.3f) ang=(%.3f, %.3f, %.3f)",
            float(record.stamp_s),
            float(p[0]),
            float(p[1]),
            float(p[2]),
            float(v[0]),
            float(v[1]),
            float(v[2]),
            float(w[0]),
            float(w[1]),
            float(w[2]),
        )


@contextmanager
def open_jsonl_sink(
    path: Path,
    *,
    flush_every_records: int = 1,
    flush_interval_s: float = 0.0,
) -> Iterator[JsonlOdometrySink]:
    """打开 JSONL sink；退出时 flush 并关闭文件。"""

    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    with path.open("w", encoding="utf-8") as f_out:
        sink = JsonlOdometrySink(
            f=f_out,
            flush_every_records=int(flush_every_records),
            flush_interval_s=float(flush_interval_s),
        )
        try:
            yield sink
        finally:
            sink.flush()
