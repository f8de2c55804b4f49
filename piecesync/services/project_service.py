from typing import Optional

from piecesync.config import config
from piecesync.db.enums import ReconciliationKind
from piecesync.errors import NotFoundError, ReconciliationConflict
from piecesync.logger import get_logger
from piecesync.models.client import Client
from piecesync.models.project import Project
from piecesync.schemas.piece import ImportHeader
from piecesync.schemas.reconciliation import ReconciliationOutcome
from piecesync.services.audit_log_service import AuditLogService
from piecesync.services.piece_store import PieceStore

logger = get_logger(__name__)


class ProjectService:
    """
    Service for creating projects/clients out of an import header.
    只在用户确认后调用：导入流程本身不会隐式创建业务实体
    禁止 ProjectService 接触 PieceGroup / PieceStatus
    """

    def __init__(
        self,
        store: PieceStore,
        audit_log_service: AuditLogService,
    ):
        self.store = store
        self.audit_log_service = audit_log_service

    def create_from_outcome(
        self,
        *,
        owner_id: str,
        header: ImportHeader,
        outcome: ReconciliationOutcome,
        operator_id: str,
        status: Optional[str] = None,
    ) -> Project:
        '''
        确认 new_project 结果：需要时先创建客户，再创建项目

        :param owner_id: 所属账号
        :param header: 批次表头
        :param outcome: ReconciliationService.resolve 的结果，必须是 new_project
        :param operator_id: 操作者ID
        :param status: 项目状态，默认取配置
        :return: 新项目
        '''
        if outcome.kind == ReconciliationKind.CONFLICT:
            raise ReconciliationConflict(
                project_code=outcome.project_code,
                existing_client_name=outcome.existing_client_name,
                header_client_name=outcome.header_client_name,
            )
        if outcome.kind != ReconciliationKind.NEW_PROJECT:
            raise ValueError(f"Project {outcome.project_code} already exists")

        with self.store.unit_of_work("create_project_from_header"):
            # 1. 客户：已存在则引用，否则先创建
            client: Optional[Client] = None
            if outcome.existing_client_id:
                client = self.store.db.get(Client, outcome.existing_client_id)
                if client is None:
                    raise NotFoundError(f"Client {outcome.existing_client_id} not found")
            else:
                client = self.store.create_client(owner_id, outcome.client_name_to_create or header.client_name)
                self.audit_log_service.record_create(
                    project_id=None,
                    entity_type="client",
                    entity_id=client.id,
                    operator_id=operator_id,
                )

            # 2. 项目
            project = self.store.create_project(
                owner_id,
                header.model_copy(update={"project_name": outcome.suggested_name or header.project_name}),
                client,
                status=status or config.DEFAULT_PROJECT_STATUS,
            )
            self.audit_log_service.record_create(
                project_id=project.id,
                entity_type="project",
                entity_id=project.id,
                operator_id=operator_id,
            )

        logger.info(f"[project] created {project.project_code} ({project.id}) for client {client.name}")
        return project
