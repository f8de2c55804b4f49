# piecesync/schemas/reconciliation.py
from typing import Optional
from pydantic import BaseModel, ConfigDict

from piecesync.db.enums import ReconciliationKind


class ReconciliationOutcome(BaseModel):
    '''
    对导入批次表头与现有项目/客户的匹配结果

    kind = matched:      project_id
    kind = new_project:  suggested_name, project_code, existing_client_id | client_name_to_create
    kind = conflict:     existing_client_name, header_client_name
    '''
    model_config = ConfigDict(frozen=True)

    kind: ReconciliationKind
    project_code: str
    project_id: Optional[str] = None
    suggested_name: Optional[str] = None
    existing_client_id: Optional[str] = None
    client_name_to_create: Optional[str] = None
    existing_client_name: Optional[str] = None
    header_client_name: Optional[str] = None

    @classmethod
    def matched(cls, *, project_code: str, project_id: str) -> "ReconciliationOutcome":
        return cls(kind=ReconciliationKind.MATCHED, project_code=project_code, project_id=project_id)

    @classmethod
    def new_project(
        cls,
        *,
        project_code: str,
        suggested_name: str,
        existing_client_id: Optional[str],
        client_name_to_create: Optional[str],
    ) -> "ReconciliationOutcome":
        return cls(
            kind=ReconciliationKind.NEW_PROJECT,
            project_code=project_code,
            suggested_name=suggested_name,
            existing_client_id=existing_client_id,
            client_name_to_create=client_name_to_create,
        )

    @classmethod
    def conflict(
        cls,
        *,
        project_code: str,
        existing_client_name: str,
        header_client_name: str,
    ) -> "ReconciliationOutcome":
        return cls(
            kind=ReconciliationKind.CONFLICT,
            project_code=project_code,
            existing_client_name=existing_client_name,
            header_client_name=header_client_name,
        )

    @property
    def is_conflict(self) -> bool:
        return self.kind == ReconciliationKind.CONFLICT
