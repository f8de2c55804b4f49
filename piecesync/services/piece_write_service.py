# piecesync/services/piece_write_service.py
from typing import Dict, List, Optional, Sequence, Tuple, Union

from piecesync.db.enums import ProgressStatus, WritePolicy
from piecesync.errors import CorruptBatchError, NotFoundError, PartialWriteError, StoreWriteError
from piecesync.logger import get_logger
from piecesync.models.piece_group import PieceGroup
from piecesync.orchestration.progress import ProgressRecorder
from piecesync.schemas.piece import DeleteResult, PieceGroupData, WriteResult
from piecesync.services.audit_log_service import AuditLogService
from piecesync.services.piece_store import PieceStore
from piecesync.services.status_sync_service import StatusSyncService

logger = get_logger(__name__)


def _group_snapshot(group: PieceGroup) -> dict:
    return {
        "name": group.name,
        "piece_type": group.piece_type,
        "quantity": group.quantity,
        "unit_volume": group.unit_volume,
        "piece_ids": list(group.piece_ids or []),
    }


class PieceWriteService:
    """
    Write grouped pieces into a project.

    写入顺序（同一个 unit_of_work 内）：
    1. 校验项目存在、单件编号不冲突
    2. replace_all 删除旧分组 / append_only 只追加
    3. 同步单件状态（不删除任何状态行）
    4. 在嵌套保存点内重算 total_volume；失败时分组照常保存，抛出 PartialWriteError

    commit / rollback 由调用方（tools 层）负责
    """

    def __init__(
        self,
        store: PieceStore,
        status_sync: StatusSyncService,
        audit_log_service: AuditLogService,
    ):
        self.store = store
        self.status_sync = status_sync
        self.audit_log_service = audit_log_service

    # =========
    # Validation
    # =========
    @staticmethod
    def _check_batch_ids(groups: Sequence[PieceGroupData]) -> None:
        seen: Dict[str, str] = {}
        duplicated = set()
        for group in groups:
            for piece_id in group.piece_ids:
                if piece_id in seen:
                    duplicated.add(piece_id)
                seen[piece_id] = group.name
        if duplicated:
            raise CorruptBatchError(
                f"instance identifiers assigned to more than one piece group: {sorted(duplicated)}",
                piece_ids=list(duplicated),
            )

    def _check_append_collisions(self, project_id: str, groups: Sequence[PieceGroupData]) -> None:
        existing = set()
        for group in self.store.list_piece_groups(project_id):
            existing.update(group.piece_ids or [])
        incoming = {piece_id for g in groups for piece_id in g.piece_ids}
        collisions = existing & incoming
        if collisions:
            raise CorruptBatchError(
                f"instance identifiers already belong to a piece group of project {project_id}: {sorted(collisions)}",
                piece_ids=list(collisions),
            )

    # =========
    # Volume
    # =========
    def _recompute_volume(self, project_id: str) -> Tuple[Optional[float], Optional[StoreWriteError]]:
        '''
        在嵌套保存点内重算 total_volume = Σ 当前全部分组 (unit_volume × quantity)
        失败只回滚这个保存点，不影响已写入的分组

        :return: (volume, error)
        '''
        volume: Optional[float] = None
        try:
            with self.store.unit_of_work("update_project_volume"):
                project = self.store.get_project(project_id)
                before = project.total_volume if project is not None else None
                volume = self.store.sum_project_volume(project_id)
                self.store.update_project_volume(project_id, volume)
                self.audit_log_service.record_system_update(
                    project_id=project_id,
                    entity_type="project",
                    entity_id=project_id,
                    changed_attribute="total_volume",
                    before_value=before,
                    after_value=volume,
                )
        except StoreWriteError as e:
            logger.error(f"[write] total volume update failed for project {project_id}: {e}")
            return volume, e
        return volume, None

    # =========
    # Write
    # =========
    def write(
        self,
        *,
        project_id: str,
        groups: Sequence[PieceGroupData],
        policy: Union[WritePolicy, str],
        operator_id: str,
        progress: Optional[ProgressRecorder] = None,
    ) -> WriteResult:
        '''
        :param project_id: 目标项目
        :param groups: GroupingService 的分组结果（可先用 GroupingService.select 挑选）
        :param policy: replace_all / append_only
        :param operator_id: 操作者ID
        :return: WriteResult
        :raises PartialWriteError: 分组已保存但 total_volume 更新失败，异常上带 result
        '''
        policy = WritePolicy(policy)
        stage = f"write_pieces:{policy.value}"
        if progress:
            progress.emit(stage, ProgressStatus.BEGUN, project_id=project_id, groups=len(groups))
        logger.info(f"[write] begun project={project_id} policy={policy.value} groups={len(groups)}")

        try:
            with self.store.unit_of_work(stage):
                project = self.store.get_project(project_id)
                if project is None:
                    raise NotFoundError(f"Project {project_id} not found")
                self._check_batch_ids(groups)

                removed: List[PieceGroup] = []
                if policy == WritePolicy.REPLACE_ALL:
                    removed, created = self.store.replace_piece_groups(project_id, project.owner_id, groups)
                else:
                    self._check_append_collisions(project_id, groups)
                    created = self.store.append_piece_groups(project_id, project.owner_id, groups)

                for group in removed:
                    self.audit_log_service.record_delete(
                        project_id=project_id,
                        entity_type="piece_group",
                        entity_id=group.id,
                        before_value=_group_snapshot(group),
                        operator_id=operator_id,
                    )
                for group in created:
                    self.audit_log_service.record_create(
                        project_id=project_id,
                        entity_type="piece_group",
                        entity_id=group.id,
                        operator_id=operator_id,
                    )

                statuses = self.status_sync.sync(project_id, created)
                volume, volume_error = self._recompute_volume(project_id)
        except Exception as e:
            if progress:
                progress.emit(stage, ProgressStatus.FAILED, project_id=project_id, error=str(e))
            logger.error(f"[write] failed project={project_id} policy={policy.value}: {e}")
            raise

        result = WriteResult(
            project_id=project_id,
            policy=policy.value,
            groups_written=len(created),
            groups_removed=len(removed),
            total_volume=volume,
            volume_updated=volume_error is None,
            statuses=statuses,
        )

        if volume_error is not None:
            if progress:
                progress.emit(stage, ProgressStatus.FAILED, project_id=project_id, partial=True, error=str(volume_error))
            raise PartialWriteError(
                project_id=project_id,
                total_volume=volume,
                cause=volume_error,
                result=result,
            )

        if progress:
            progress.emit(stage, ProgressStatus.SUCCEEDED, project_id=project_id, total_volume=volume)
        logger.info(
            f"[write] succeeded project={project_id} written={result.groups_written} "
            f"removed={result.groups_removed} total_volume={volume}"
        )
        return result

    # =========
    # Delete
    # =========
    def delete_group(
        self,
        *,
        group_id: str,
        operator_id: str,
        progress: Optional[ProgressRecorder] = None,
    ) -> DeleteResult:
        '''
        显式删除分组（两步）：先删该分组所有单件的状态行，再删分组，最后重算 total_volume
        '''
        if progress:
            progress.emit("delete_piece_group", ProgressStatus.BEGUN, group_id=group_id)

        try:
            with self.store.unit_of_work("delete_piece_group"):
                group = self.store.get_piece_group(group_id)
                if group is None:
                    raise NotFoundError(f"Piece group {group_id} not found")
                project_id = group.project_id
                snapshot = _group_snapshot(group)

                # 1. statuses
                deleted = self.store.delete_statuses_for_instances(project_id, snapshot["piece_ids"])
                # 2. group
                self.store.delete_piece_group(group_id)
                self.audit_log_service.record_delete(
                    project_id=project_id,
                    entity_type="piece_group",
                    entity_id=group_id,
                    before_value=snapshot,
                    operator_id=operator_id,
                )
                volume, volume_error = self._recompute_volume(project_id)
        except Exception as e:
            if progress:
                progress.emit("delete_piece_group", ProgressStatus.FAILED, group_id=group_id, error=str(e))
            logger.error(f"[delete] failed group={group_id}: {e}")
            raise

        result = DeleteResult(
            project_id=project_id,
            group_id=group_id,
            statuses_deleted=deleted,
            total_volume=volume,
            volume_updated=volume_error is None,
        )
        if volume_error is not None:
            if progress:
                progress.emit("delete_piece_group", ProgressStatus.FAILED, group_id=group_id, partial=True)
            raise PartialWriteError(
                project_id=project_id,
                total_volume=volume,
                cause=volume_error,
                result=result,
            )

        if progress:
            progress.emit("delete_piece_group", ProgressStatus.SUCCEEDED, group_id=group_id, total_volume=volume)
        logger.info(f"[delete] group={group_id} project={project_id} statuses_deleted={deleted} total_volume={volume}")
        return result
