"""坐标系变换解析（Transform Resolver）。

职责：
- 给定 source/target 两个坐标系与时间，返回 T_target_from_source。
- 解析失败抛 TransformUnavailable；融合核心把它当作“不透明查询”，自身不做缓存或插值。

实现：
- `StaticTransformBuffer`：静态 tf 树（每个 child 只有一个 parent），查询时沿树链复合。
  静态变换对任意时刻都成立，因此 stamp_s 只用于接口对齐。
"""

from __future__ import annotations

from collections import deque
from typing import Iterable, Protocol

import numpy as np

from fiducial_odom.errors import TransformUnavailable
from fiducial_odom.transforms import compose_T, invert_T
from fiducial_odom.types import Transform3D


class TransformResolver(Protocol):
    """外部 tf 协作者的最小接口。"""

    def resolve(self, source_frame: str, target_frame: str, stamp_s: float) -> Transform3D:
        """返回 T_target_from_source；不可达时抛 TransformUnavailable。"""
        ...


def validate_frame_id(frame_id: str, *, name: str = "frame_id") -> str:
    """校验坐标系名：非空、无首尾空白、不以 '/' 开头（tf2 约定）。"""

    if not isinstance(frame_id, str):
        raise ValueError(f"{name} must be a string, got {type(frame_id).__name__}")
    if not frame_id or frame_id.strip() != frame_id:
        raise ValueError(f"{name} must be non-empty without surrounding whitespace, got {frame_id!r}")
    if frame_id.startswith("/"):
        raise ValueError(f"{name} must not start with '/', got {frame_id!r}")
    if any(ch.isspace() for ch in frame_id):
        raise ValueError(f"{name} must not contain whitespace, got {frame_id!r}")
    return frame_id


class StaticTransformBuffer:
    """静态变换树。

    用法：
        buf = StaticTransformBuffer()
        buf.set_transform("footprint", "camera_link", T_footprint_from_camera)
        T = buf.resolve("camera_link", "footprint", stamp_s=0.0)
    """

    def __init__(self) -> None:
        # child -> (parent, T_parent_from_child)
        self._edges: dict[str, tuple[str, np.ndarray]] = {}

    @property
    def frames(self) -> set[str]:
        out: set[str] = set()
        for child, (parent, _) in self._edges.items():
            out.add(child)
            out.add(parent)
        return out

    def _ancestors(self, frame: str) -> Iterable[str]:
        cur = frame
        while cur in self._edges:
            cur = self._edges[cur][0]
            yield cur

    def set_transform(self, parent_frame: str, child_frame: str, transform: Transform3D) -> None:
        """登记 T_parent_from_child。若 child 已有 parent，则覆盖（与 tf 的语义一致）。"""

        parent = validate_frame_id(parent_frame, name="parent_frame")
        child = validate_frame_id(child_frame, name="child_frame")
        if parent == child:
            raise ValueError(f"parent and child frame must differ, got {parent!r}")
        if child in set(self._ancestors(parent)):
            raise ValueError(f"adding {parent!r} -> {child!r} would create a cycle")

        self._edges[child] = (parent, transform.as_matrix())

    def resolve(self, source_frame: str, target_frame: str, stamp_s: float = 0.0) -> Transform3D:
        src = str(source_frame)
        dst = str(target_frame)
        if src == dst:
            return Transform3D.identity()

        known = self.frames
        if src not in known or dst not in known:
            missing = [f for f in (src, dst) if f not in known]
            raise TransformUnavailable(src, dst, f"unknown frame(s) {missing}")

        # 邻接表：frame -> [(neighbor, T_neighbor_from_frame)]
        adj: dict[str, list[tuple[str, np.ndarray]]] = {}
        for child, (parent, T_pc) in self._edges.items():
            adj.setdefault(child, []).append((parent, T_pc))
            adj.setdefault(parent, []).append((child, invert_T(T_pc)))

        # BFS，同时累积 T_frame_from_src。
        visited = {src}
        q: deque[tuple[str, np.ndarray]] = deque([(src, np.eye(4, dtype=np.float64))])
        while q:
            frame, T_frame_from_src = q.popleft()
            for nxt, T_nxt_from_frame in adj.get(frame, []):
                if nxt in visited:
                    continue
                T_nxt_from_src = compose_T(T_nxt_from_frame, T_frame_from_src)
                if nxt == dst:
                    return Transform3D.from_matrix(T_nxt_from_src)
                visited.add(nxt)
                q.append((nxt, T_nxt_from_src))

        raise TransformUnavailable(src, dst, "frames are not connected")
