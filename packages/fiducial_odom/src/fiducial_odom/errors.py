"""融合周期内的错误分类。

约定：
- 这些错误都只影响“当前周期”：周期放弃、不输出、不改状态，下一个 tick 自然重试。
- “没有检测到靶标”不是错误：选择器直接返回 None。
- 配置错误（帧名非法、频率非法等）用 ValueError/KeyError 表达，在启动阶段直接失败。
"""

from __future__ import annotations


class FiducialOdomError(RuntimeError):
    """fiducial_odom 周期级错误的基类。"""


class TransformUnavailable(FiducialOdomError):
    """在指定时刻无法解析两个坐标系之间的变换。"""

    def __init__(self, source_frame: str, target_frame: str, detail: str = "") -> None:
        self.source_frame = str(source_frame)
        self.target_frame = str(target_frame)
        msg = f"no transform from '{self.source_frame}' to '{self.target_frame}'"
        if detail:
            msg = f"{msg}: {detail}"
        super().__init__(msg)


class SourceUnavailable(FiducialOdomError):
    """图像源/检测器不可用（打开失败、取帧失败等）。"""

    def __init__(self, source_id: str, detail: str = "") -> None:
        self.source_id = str(source_id)
        msg = f"source '{self.source_id}' unavailable"
        if detail:
            msg = f"{msg}: {detail}"
        super().__init__(msg)


class DegenerateTimestep(FiducialOdomError):
    """相邻两次被接受的位姿之间 dt <= 0，无法求速度。"""

    def __init__(self, dt_s: float) -> None:
        self.dt_s = float(dt_s)
        super().__init__(f"degenerate timestep between accepted poses: dt={self.dt_s!r}s")
