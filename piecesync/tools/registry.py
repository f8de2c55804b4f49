# piecesync/tools/registry.py
from typing import Dict, List, Optional

from piecesync.schemas.tool_spec import ToolSpec


class ToolRegistry:
    _instance_created = False

    def __init__(self):
        # 只允许一个全局实例，统一使用 tool_registry
        if ToolRegistry._instance_created:
            raise RuntimeError("Use global tool_registry, do not instantiate ToolRegistry")
        ToolRegistry._instance_created = True

        self._tools: Dict[str, ToolSpec] = {}

    def register(self, spec: ToolSpec) -> None:
        '''
        Register a tool. Raises ValueError if the name is already taken.
        '''
        if spec.name in self._tools:
            raise ValueError(f"Tool already registered: {spec.name}")
        self._tools[spec.name] = spec

    def get(self, name: str) -> Optional[ToolSpec]:
        return self._tools.get(name)

    def names(self) -> List[str]:
        return sorted(self._tools)


# 全局唯一实例
tool_registry = ToolRegistry()
