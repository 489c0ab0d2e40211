"""fiducial_odom 的日志工具。

说明：
    本包不强制要求外部提供特定的日志框架。
    这里提供一个“可用即可”的默认 logger，避免在脚本/单测环境中出现
    无 handler 导致的静默。
"""

from __future__ import annotations

import logging

LOGGER_NAME = "fiducial_odom"


def default_logger() -> logging.Logger:
    """获取 fiducial_odom 的默认 logger。"""

    logger = logging.getLogger(LOGGER_NAME)
    if not logger.handlers:
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter("%(asctime)s %(levelname)s %(name)s: %(message)s"))
        logger.addHandler(handler)
        logger.setLevel(logging.INFO)
    return logger


def configure_logger(*, debug: bool) -> logging.Logger:
    """按配置调整默认 logger 的级别（debug_logging=True 时输出中间量）。"""

    logger = default_logger()
    logger.setLevel(logging.DEBUG if bool(debug) else logging.INFO)
    return logger
