"""fiducial_odom 入口（CLI / python -m）。

该模块是“薄入口层”，只负责：
- 解析 CLI 参数
- （Optional）加载配置文件并套用命令行覆盖
- 装配运行时组件并进入固定频率循环
"""

from __future__ import annotations

import dataclasses
from contextlib import ExitStack
from pathlib import Path
from typing import Optional, Sequence

from fiducial_odom.cli import build_arg_parser
from fiducial_odom.config import FiducialOdomConfig
from fiducial_odom.config_yaml import load_fiducial_odom_config
from fiducial_odom.logging_utils import configure_logger
from fiducial_odom.runtime_wiring import build_driver


def _load_config(args) -> FiducialOdomConfig:  # noqa: ANN001
    config_raw = str(getattr(args, "config", "") or "").strip()
    cfg = load_fiducial_odom_config(Path(config_raw).resolve()) if config_raw else FiducialOdomConfig()

    if args.rate is not None:
        cfg = dataclasses.replace(cfg, rate_hz=float(args.rate))
    if bool(args.debug):
        cfg = dataclasses.replace(cfg, debug_logging=True)
    if args.out:
        cfg = dataclasses.replace(cfg, output=dataclasses.replace(cfg.output, jsonl_path=str(args.out)))
    return cfg.validate()


def main(argv: Optional[Sequence[str]] = None) -> int:
    """主入口；返回进程退出码。"""

    args = build_arg_parser().parse_args(list(argv) if argv is not None else None)

    try:
        cfg = _load_config(args)
    except (ValueError, KeyError, TypeError, RuntimeError) as exc:
        print(f"config error: {exc}")
        return 2

    logger = configure_logger(debug=bool(cfg.debug_logging))
    max_cycles = int(args.max_cycles) if int(args.max_cycles) > 0 else None

    try:
        with ExitStack() as stack:
            driver = build_driver(cfg, stack=stack, logger=logger)
            logger.info(
                "fiducial odometry started: sources=%s rate=%.2fHz",
                ",".join(cfg.sensor_order),
                float(cfg.rate_hz),
            )
            try:
                driver.run(float(cfg.rate_hz), max_cycles=max_cycles)
            finally:
                logger.info("Done. %s", driver.stats.summary())
    except (ValueError, RuntimeError) as exc:
        print(str(exc))
        return 2
    except KeyboardInterrupt:
        print("Interrupted.")
        return 130

    return 0
