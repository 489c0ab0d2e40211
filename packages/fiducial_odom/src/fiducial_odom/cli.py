"""fiducial_odom CLI 参数解析。"""

from __future__ import annotations

import argparse


def build_arg_parser() -> argparse.ArgumentParser:
    # 说明：help 文本尽量使用 ASCII，避免不同终端编码下 --help 乱码。
    p = argparse.ArgumentParser(description="Fiducial odometry: fuse marker detections into odom records")
    p.add_argument(
        "--config",
        default="",
        help="Optional config file (.json/.yaml/.yml). Missing fields use built-in defaults.",
    )
    p.add_argument("--rate", type=float, default=None, help="override rate_hz (cycles per second)")
    p.add_argument("--debug", action="store_true", help="log intermediate poses (debug_logging=true)")
    p.add_argument("--out", default=None, help="override output.jsonl_path (write records as JSONL)")
    p.add_argument("--max-cycles", type=int, default=0, help="stop after N cycles (0 = no limit)")
    return p
