# piecesync/schemas/tool_result.py
from typing import Any, Dict, Optional
from pydantic import BaseModel

from piecesync.schemas.error_type import ErrorType


class ToolResult(BaseModel):
    '''
    工具执行结果

    ok: 是否完成预期操作（PARTIAL_WRITE 时 ok=True 且带 error_type）
    error_type / error_message: 结构化错误分类与可读信息
    data: 结构化结果
    explanation: 面向调用方的解释和下一步建议
    side_effect: 是否改变了持久化状态
    irreversible: 是否不可撤销
    '''
    ok: bool

    error_type: Optional[ErrorType] = None
    error_message: Optional[str] = None

    data: Optional[Dict[str, Any]] = None
    explanation: Optional[str] = None

    side_effect: bool = False
    irreversible: bool = False
