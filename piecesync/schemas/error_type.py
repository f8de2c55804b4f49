# piecesync/schemas/error_type.py
from enum import Enum


class ErrorType(str, Enum):
    '''
    工具调用失败（或部分成功）的结构化分类

    INPUT_ERROR: 调用参数缺失或取值非法（如未知写入策略），修正后重试
    PARSE_ERROR: 详图文件结构错误（缺根节点/无构件/缺表头/单件编号冲突），整批拒绝
    RECONCILIATION_CONFLICT: 项目编号已存在但客户名称不同，需要用户明确决定，不会自动处理
    BUSINESS_RULE_ERROR: 操作违反业务规则（如对已匹配项目再次创建）
    NOT_FOUND: 引用的项目/分组/单件不存在
    DATABASE_ERROR: 存储调用失败，错误信息包含失败的操作名
    PARTIAL_WRITE: 构件已保存，但 total_volume 更新失败；可报告、可恢复，不是写入失败
    SESSION_VERSION_MISMATCH: 会话文件版本不兼容，不做任何兼容转换
    TOOL_NOT_ALLOWED: 当前调用方不允许使用该工具
    SYSTEM_ERROR: 未分类异常
    '''
    INPUT_ERROR = "INPUT_ERROR"
    PARSE_ERROR = "PARSE_ERROR"

    RECONCILIATION_CONFLICT = "RECONCILIATION_CONFLICT"
    BUSINESS_RULE_ERROR = "BUSINESS_RULE_ERROR"
    NOT_FOUND = "NOT_FOUND"

    DATABASE_ERROR = "DATABASE_ERROR"
    PARTIAL_WRITE = "PARTIAL_WRITE"

    SESSION_VERSION_MISMATCH = "SESSION_VERSION_MISMATCH"

    TOOL_NOT_ALLOWED = "TOOL_NOT_ALLOWED"
    SYSTEM_ERROR = "SYSTEM_ERROR"
