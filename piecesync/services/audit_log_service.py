from typing import Any, Optional, Union
from uuid import uuid4
from datetime import datetime, date
from decimal import Decimal

from sqlalchemy.orm import Session

from piecesync.models.audit_log import AuditLog
from piecesync.db.enums import AuditEntityType, AuditAction


class AuditLogService:
    """
    Centralized service for recording all auditable actions.
    This service is the ONLY place where AuditLog records can be created.
    """

    def __init__(self, db: Session):
        self.db = db

    def serialize_audit_value(self, value) -> Any:
        if value is None:
            return None
        if isinstance(value, Decimal):
            return float(value)
        if isinstance(value, (datetime, date)):
            return value.isoformat()
        if isinstance(value, (int, float, str, bool)):
            return value
        if isinstance(value, (list, tuple)):
            return [self.serialize_audit_value(v) for v in value]
        if isinstance(value, dict):
            return {str(k): self.serialize_audit_value(v) for k, v in value.items()}
        return str(value)  # 兜底

    def _normalize_entity_type(self, entity_type: Union[str, AuditEntityType]) -> AuditEntityType:
        """
        将字符串或枚举值转换为 AuditEntityType 枚举
        支持：枚举本身 / 枚举值 "piece_group" / 枚举名或类名 "PieceGroup"
        """
        if isinstance(entity_type, AuditEntityType):
            return entity_type

        entity_type_str = str(entity_type).strip()
        for enum_member in AuditEntityType:
            if enum_member.value == entity_type_str.lower():
                return enum_member
            if enum_member.name.lower() == entity_type_str.lower():
                return enum_member

        raise ValueError(f"Unknown entity_type: {entity_type_str}. Valid values: {[e.value for e in AuditEntityType]}")

    def _record(
        self,
        *,
        project_id: Optional[str],
        entity_type: Union[str, AuditEntityType],
        entity_id: str,
        action: AuditAction,
        changed_attribute: str,
        before_value: Any,
        after_value: Any,
        operator_id: str,
    ) -> None:
        log = AuditLog(
            id=str(uuid4()),
            project_id=project_id,
            entity_type=self._normalize_entity_type(entity_type),
            entity_id=entity_id,
            action=action,
            changed_attribute=changed_attribute,
            before_value=self.serialize_audit_value(before_value),
            after_value=self.serialize_audit_value(after_value),
            operator_id=operator_id,
            timestamp=datetime.now(),
        )
        self.db.add(log)

    def record_create(
        self,
        *,
        project_id: Optional[str],
        entity_type: Union[str, AuditEntityType],
        entity_id: str,
        operator_id: str,
    ) -> None:
        '''
        创建一条创建操作的审计日志
        适用于创建 Project, Client, PieceGroup 时调用

        :param project_id: 从属项目ID,可选
        :param entity_type: 实体类型：可以是字符串或 AuditEntityType 枚举
        :param entity_id: 所属实体唯一id
        :param operator_id: 操作用户ID
        '''
        self._record(
            project_id=project_id,
            entity_type=entity_type,
            entity_id=entity_id,
            action=AuditAction.create,
            changed_attribute="__all__",
            before_value=None,
            after_value=None,
            operator_id=operator_id,
        )

    def record_update(
        self,
        *,
        project_id: Optional[str],
        entity_type: Union[str, AuditEntityType],
        entity_id: str,
        changed_attribute: str,
        before_value: Any,
        after_value: Any,
        operator_id: str,
    ) -> None:
        '''
        创建一条更新操作的审计日志，如单件放行状态的修改
        '''
        self._record(
            project_id=project_id,
            entity_type=entity_type,
            entity_id=entity_id,
            action=AuditAction.update,
            changed_attribute=changed_attribute,
            before_value=before_value,
            after_value=after_value,
            operator_id=operator_id,
        )

    def record_delete(
        self,
        *,
        project_id: Optional[str],
        entity_type: Union[str, AuditEntityType],
        entity_id: str,
        before_value: Any,
        operator_id: str,
    ) -> None:
        '''
        创建一条删除操作的审计日志：before_value 保存被删实体的关键信息
        '''
        self._record(
            project_id=project_id,
            entity_type=entity_type,
            entity_id=entity_id,
            action=AuditAction.delete,
            changed_attribute="__all__",
            before_value=before_value,
            after_value=None,
            operator_id=operator_id,
        )

    def record_system_update(
        self,
        *,
        project_id: Optional[str],
        entity_type: Union[str, AuditEntityType],
        entity_id: str,
        changed_attribute: str,
        before_value: Any,
        after_value: Any,
    ) -> None:
        '''
        创建一条系统自动更新操作的审计日志。应用场景：
        PieceWriteService 重算 Project.total_volume
        '''
        self._record(
            project_id=project_id,
            entity_type=entity_type,
            entity_id=entity_id,
            action=AuditAction.system,
            changed_attribute=changed_attribute,
            before_value=before_value,
            after_value=after_value,
            operator_id="SYSTEM",
        )
