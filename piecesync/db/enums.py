# piecesync/db/enums.py
import enum


# AuditLog related enums
class AuditEntityType(enum.Enum):
    Project = "project"
    Client = "client"
    PieceGroup = "piece_group"
    PieceStatus = "piece_status"


class AuditAction(enum.Enum):
    create = "create"
    update = "update"
    delete = "delete"
    system = "system"


# Import related enums
class WritePolicy(enum.Enum):
    REPLACE_ALL = "replace_all"    # 导入文件是项目的完整详图，替换全部旧构件
    APPEND_ONLY = "append_only"    # 补充详图，只追加不删除


class ReconciliationKind(enum.Enum):
    MATCHED = "matched"
    NEW_PROJECT = "new_project"
    CONFLICT = "conflict"


class ProgressStatus(enum.Enum):
    BEGUN = "begun"
    SUCCEEDED = "succeeded"
    FAILED = "failed"
