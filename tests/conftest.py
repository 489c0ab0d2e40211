"""pytest 运行期配置。

代码位于 `packages/fiducial_odom/src/`（src-layout），测试应基于已安装到当前环境的包
（例如 `pip install -e .[test]` 后再执行 `python -m pytest`）。

注意：请不要在测试侧把 `src` 目录注入 sys.path，避免“源码目录 + 已安装包”双来源导致的导入歧义。
"""

from __future__ import annotations
