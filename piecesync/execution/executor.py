# piecesync/execution/executor.py
from typing import Any, Dict, Set

from piecesync.logger import get_logger
from piecesync.schemas.error_type import ErrorType
from piecesync.schemas.tool_result import ToolResult
from piecesync.tools.registry import ToolRegistry

logger = get_logger(__name__)


class PythonExecutor:
    def __init__(self, registry: ToolRegistry):
        self.registry = registry

    def execute(self, *, tool_name: str, args: Dict[str, Any], allowlist: Set[str]) -> ToolResult:
        '''
        按名称执行工具
        1) allowlist 检查
        2) 查找 ToolSpec
        3) 调用工具函数；返回值不是 ToolResult 视为系统错误
        '''
        # 1 allowlist
        if tool_name not in allowlist:
            logger.warning(f"[executor] tool not allowed: {tool_name}")
            return ToolResult(
                ok=False,
                error_type=ErrorType.TOOL_NOT_ALLOWED,
                error_message=f"{tool_name} is not allowed for this caller.",
                explanation="Use one of the allowed tools.",
            )

        # 2 lookup
        spec = self.registry.get(tool_name)
        if not spec:
            return ToolResult(
                ok=False,
                error_type=ErrorType.SYSTEM_ERROR,
                error_message=f"Tool '{tool_name}' not found in registry.",
                explanation="Tools may not have been discovered. Call discover_tools() first.",
            )

        # 3 execute
        try:
            result = spec.func(**args)
        except TypeError as e:
            # 参数名不匹配
            return ToolResult(
                ok=False,
                error_type=ErrorType.INPUT_ERROR,
                error_message=str(e),
                explanation=f"Expected arguments: {sorted(spec.input_schema)}",
            )
        except Exception as e:
            # 工具内部应已分类，走到这里说明实现有遗漏
            logger.exception(f"[executor] unhandled exception in tool {tool_name}")
            return ToolResult(
                ok=False,
                error_type=ErrorType.SYSTEM_ERROR,
                error_message=str(e),
                explanation="Unhandled exception in executor. Escalate.",
            )

        if not isinstance(result, ToolResult):
            return ToolResult(
                ok=False,
                error_type=ErrorType.SYSTEM_ERROR,
                error_message="Tool did not return ToolResult instance.",
                explanation="Tool implementation error. Escalate.",
            )
        return result
