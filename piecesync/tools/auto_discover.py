# piecesync/tools/auto_discover.py
import importlib
import pkgutil

import piecesync.tools
'''
启动时：

from piecesync.tools.registry import tool_registry
from piecesync.tools.auto_discover import discover_tools
discover_tools()  # 导入 piecesync.tools 下所有模块，模块 import 时把工具注册到 tool_registry

tool_registry.get("import_pieces")
'''


def discover_tools():
    for _, module_name, _ in pkgutil.walk_packages(
        piecesync.tools.__path__,
        piecesync.tools.__name__ + "."
    ):
        importlib.import_module(module_name)
