# piecesync/services/status_sync_service.py
from typing import Dict, Iterable, List

from piecesync.errors import NotFoundError
from piecesync.logger import get_logger
from piecesync.models.piece_status import PieceStatus
from piecesync.schemas.piece import StatusSyncResult
from piecesync.schemas.report import GroupProgress, ReleaseReport, ReleaseReportRow
from piecesync.services.audit_log_service import AuditLogService
from piecesync.services.filter_service import natural_key
from piecesync.services.piece_store import PieceStore

logger = get_logger(__name__)


class StatusSyncService:
    """
    Keep per-instance release status in step with the stored piece groups.

    - 已存在的状态：保留 is_released，只刷新缓存的构件编号
    - 不存在的状态：以未放行创建
    - 导入永远不删除状态行；只有显式删除分组时才删除（见 PieceWriteService.delete_group）
    """

    def __init__(self, store: PieceStore, audit_log_service: AuditLogService):
        self.store = store
        self.audit_log_service = audit_log_service

    def sync(self, project_id: str, groups: Iterable) -> StatusSyncResult:
        '''
        :param groups: 刚写入的分组（ORM 行或 PieceGroupData，只读 name / piece_ids）
        '''
        names_by_mark: Dict[str, str] = {}
        for group in groups:
            for piece_id in group.piece_ids or []:
                names_by_mark[piece_id] = group.name

        created, refreshed = self.store.upsert_statuses(project_id, names_by_mark)
        logger.info(f"[status] project={project_id} created={created} refreshed={refreshed}")
        return StatusSyncResult(created=created, refreshed=refreshed)

    def _current_marks(self, project_id: str) -> Dict[str, str]:
        marks: Dict[str, str] = {}
        for group in self.store.list_piece_groups(project_id):
            for piece_id in group.piece_ids or []:
                marks[piece_id] = group.name
        return marks

    def set_released(
        self,
        *,
        project_id: str,
        instance_id: str,
        released: bool,
        operator_id: str,
    ) -> PieceStatus:
        '''
        修改单件放行状态；没有状态行时直接创建
        单件编号必须属于项目当前的某个分组
        '''
        if self.store.get_project(project_id) is None:
            raise NotFoundError(f"Project {project_id} not found")
        marks = self._current_marks(project_id)
        if instance_id not in marks:
            raise NotFoundError(f"Piece {instance_id} not found in project {project_id}")

        with self.store.unit_of_work("set_piece_release"):
            before = self.store.get_statuses(project_id, [instance_id]).get(instance_id)
            before_value = before.is_released if before is not None else None
            status = self.store.upsert_status(
                project_id,
                instance_id,
                released=released,
                piece_name=marks[instance_id],
            )
            self.audit_log_service.record_update(
                project_id=project_id,
                entity_type="piece_status",
                entity_id=instance_id,
                changed_attribute="is_released",
                before_value=before_value,
                after_value=released,
                operator_id=operator_id,
            )

        logger.info(f"[status] project={project_id} piece={instance_id} released={released}")
        return status

    def release_report(self, project_id: str) -> ReleaseReport:
        '''
        每个单件一行：分组按单件编号展开，没有状态行的视为未放行
        '''
        groups = self.store.list_piece_groups(project_id)
        statuses = self.store.get_statuses(project_id)

        rows: List[ReleaseReportRow] = []
        for group in groups:
            for piece_id in group.piece_ids or []:
                status = statuses.get(piece_id)
                rows.append(ReleaseReportRow(
                    piece_mark=piece_id,
                    name=group.name,
                    piece_type=group.piece_type or "",
                    section=group.section or "",
                    weight=group.weight or 0.0,
                    unit_volume=group.unit_volume or 0.0,
                    is_released=bool(status and status.is_released),
                    released_at=status.released_at if status else None,
                ))
        rows.sort(key=lambda r: natural_key(r.piece_mark))

        released = sum(1 for r in rows if r.is_released)
        return ReleaseReport(
            project_id=project_id,
            rows=rows,
            released_count=released,
            pending_count=len(rows) - released,
        )

    def group_progress(self, project_id: str) -> List[GroupProgress]:
        statuses = self.store.get_statuses(project_id)
        progress = []
        for group in self.store.list_piece_groups(project_id):
            ids = group.piece_ids or []
            progress.append(GroupProgress(
                group_id=group.id,
                name=group.name,
                released=sum(1 for i in ids if i in statuses and statuses[i].is_released),
                total=len(ids),
            ))
        return progress
