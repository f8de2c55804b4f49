# piecesync/services/piece_store.py
from contextlib import contextmanager
from datetime import datetime
from typing import Dict, Iterable, Iterator, List, Optional, Sequence, Tuple
from uuid import uuid4

from sqlalchemy import func
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from piecesync.errors import StoreWriteError
from piecesync.models.client import Client
from piecesync.models.piece_group import PieceGroup
from piecesync.models.piece_status import PieceStatus
from piecesync.models.project import Project
from piecesync.schemas.piece import ImportHeader, PieceGroupData


class PieceStore:
    """
    Store contract consumed by the import engine, backed by a SQLAlchemy Session.

    - Every call that fails at the database level raises StoreWriteError naming the call
    - Writes are flushed, never committed: commit/rollback belongs to the caller
    - unit_of_work() opens a SAVEPOINT so a multi-call write is applied as a whole
    """

    def __init__(self, db: Session):
        self.db = db

    @contextmanager
    def _guard(self, operation: str) -> Iterator[None]:
        try:
            yield
        except SQLAlchemyError as e:
            raise StoreWriteError(operation, e) from e

    @contextmanager
    def unit_of_work(self, operation: str) -> Iterator[None]:
        '''
        一个逻辑事务单元（SAVEPOINT）。块内任何异常都会回滚到保存点后继续抛出
        '''
        with self._guard(operation):
            with self.db.begin_nested():
                yield

    # =========
    # Projects / clients
    # =========
    def get_project(self, project_id: str) -> Optional[Project]:
        with self._guard("get_project"):
            return self.db.get(Project, project_id)

    def find_project_by_code(self, owner_id: str, code: str) -> Optional[Project]:
        with self._guard("find_project_by_code"):
            return (
                self.db.query(Project)
                .filter(
                    Project.owner_id == owner_id,
                    Project.project_code == code.strip(),
                )
                .first()
            )

    def find_client_by_name(self, owner_id: str, name: str) -> Optional[Client]:
        '''
        按名称（忽略大小写、首尾空白）查找客户。只是尽力匹配，不是身份保证
        在 Python 侧比较，SQLite 的 lower() 不处理非 ASCII 字符
        '''
        wanted = name.strip().casefold()
        with self._guard("find_client_by_name"):
            clients = (
                self.db.query(Client)
                .filter(Client.owner_id == owner_id)
                .order_by(Client.created_at)
                .all()
            )
        for client in clients:
            if client.name.strip().casefold() == wanted:
                return client
        return None

    def create_client(self, owner_id: str, name: str) -> Client:
        client = Client(id=str(uuid4()), owner_id=owner_id, name=name.strip())
        with self._guard("create_client"):
            self.db.add(client)
            self.db.flush()
        return client

    def create_project(
        self,
        owner_id: str,
        header: ImportHeader,
        client: Optional[Client],
        status: Optional[str] = None,
    ) -> Project:
        project = Project(
            id=str(uuid4()),
            owner_id=owner_id,
            project_code=header.project_code.strip(),
            name=header.project_name or header.project_code,
            client_id=client.id if client else None,
            client_name=client.name if client else header.client_name,
            engineer=header.engineer,
            status=status,
            total_volume=0.0,
        )
        with self._guard("create_project"):
            self.db.add(project)
            self.db.flush()
        return project

    def update_project_volume(self, project_id: str, volume: float) -> None:
        with self._guard("update_project_volume"):
            project = self.db.get(Project, project_id)
            if project is None:
                raise StoreWriteError("update_project_volume", message=f"Project {project_id} not found")
            project.total_volume = volume
            self.db.flush()

    # =========
    # Piece groups
    # =========
    def list_piece_groups(self, project_id: str) -> List[PieceGroup]:
        with self._guard("list_piece_groups"):
            return (
                self.db.query(PieceGroup)
                .filter(PieceGroup.project_id == project_id)
                .order_by(PieceGroup.created_at, PieceGroup.name)
                .all()
            )

    def get_piece_group(self, group_id: str) -> Optional[PieceGroup]:
        with self._guard("get_piece_group"):
            return self.db.get(PieceGroup, group_id)

    def sum_project_volume(self, project_id: str) -> float:
        '''
        项目下所有分组的 Σ(unit_volume × quantity)；没有任何行时数据库返回 None，兜底为 0
        '''
        with self._guard("sum_project_volume"):
            total = (
                self.db.query(func.sum(PieceGroup.unit_volume * PieceGroup.quantity))
                .filter(PieceGroup.project_id == project_id)
                .scalar()
            )
        return float(total or 0.0)

    def replace_piece_groups(
        self,
        project_id: str,
        owner_id: str,
        groups: Sequence[PieceGroupData],
    ) -> Tuple[List[PieceGroup], List[PieceGroup]]:
        '''
        删除项目现有全部分组，再插入新分组

        :return: (removed, created)
        '''
        with self._guard("replace_piece_groups"):
            removed = self.list_piece_groups(project_id)
            for group in removed:
                self.db.delete(group)
            self.db.flush()
            created = self._insert_groups(project_id, owner_id, groups)
        return removed, created

    def append_piece_groups(
        self,
        project_id: str,
        owner_id: str,
        groups: Sequence[PieceGroupData],
    ) -> List[PieceGroup]:
        with self._guard("append_piece_groups"):
            return self._insert_groups(project_id, owner_id, groups)

    def _insert_groups(self, project_id: str, owner_id: str, groups: Sequence[PieceGroupData]) -> List[PieceGroup]:
        rows = [
            PieceGroup(
                id=str(uuid4()),
                project_id=project_id,
                owner_id=owner_id,
                name=g.name,
                piece_type=g.piece_type,
                section=g.section,
                length=g.length,
                weight=g.weight,
                unit_volume=g.unit_volume,
                material_class=g.material_class,
                quantity=g.quantity,
                piece_ids=list(g.piece_ids),
            )
            for g in groups
        ]
        self.db.add_all(rows)
        self.db.flush()
        return rows

    def delete_piece_group(self, group_id: str) -> None:
        with self._guard("delete_piece_group"):
            group = self.db.get(PieceGroup, group_id)
            if group is not None:
                self.db.delete(group)
                self.db.flush()

    # =========
    # Individual piece status
    # =========
    def get_statuses(self, project_id: str, piece_marks: Optional[Iterable[str]] = None) -> Dict[str, PieceStatus]:
        with self._guard("get_statuses"):
            query = self.db.query(PieceStatus).filter(PieceStatus.project_id == project_id)
            if piece_marks is not None:
                marks = list(piece_marks)
                if not marks:
                    return {}
                query = query.filter(PieceStatus.piece_mark.in_(marks))
            return {s.piece_mark: s for s in query.all()}

    def upsert_status(
        self,
        project_id: str,
        instance_id: str,
        released: Optional[bool] = None,
        piece_name: Optional[str] = None,
    ) -> PieceStatus:
        '''
        单条 upsert：released 为 None 时不改放行状态；放行时写入 released_at，取消放行时清空
        '''
        with self._guard("upsert_status"):
            status = (
                self.db.query(PieceStatus)
                .filter(
                    PieceStatus.project_id == project_id,
                    PieceStatus.piece_mark == instance_id,
                )
                .first()
            )
            if status is None:
                status = PieceStatus(
                    id=str(uuid4()),
                    project_id=project_id,
                    piece_mark=instance_id,
                    piece_name=piece_name,
                    is_released=False,
                )
                self.db.add(status)
            if piece_name is not None:
                status.piece_name = piece_name
            if released is not None:
                status.is_released = released
                status.released_at = datetime.now() if released else None
            self.db.flush()
        return status

    def upsert_statuses(self, project_id: str, names_by_mark: Dict[str, str]) -> Tuple[int, int]:
        '''
        批量 upsert（导入同步用）：已存在的只刷新 piece_name，不存在的以未放行创建

        :return: (created, refreshed)
        '''
        existing = self.get_statuses(project_id, names_by_mark.keys())
        created = refreshed = 0
        with self._guard("upsert_statuses"):
            for mark, name in names_by_mark.items():
                status = existing.get(mark)
                if status is None:
                    self.db.add(PieceStatus(
                        id=str(uuid4()),
                        project_id=project_id,
                        piece_mark=mark,
                        piece_name=name,
                        is_released=False,
                        released_at=None,
                    ))
                    created += 1
                else:
                    status.piece_name = name
                    refreshed += 1
            self.db.flush()
        return created, refreshed

    def delete_statuses_for_instances(self, project_id: str, instance_ids: Sequence[str]) -> int:
        if not instance_ids:
            return 0
        with self._guard("delete_statuses_for_instances"):
            count = (
                self.db.query(PieceStatus)
                .filter(
                    PieceStatus.project_id == project_id,
                    PieceStatus.piece_mark.in_(list(instance_ids)),
                )
                .delete(synchronize_session="fetch")
            )
            self.db.flush()
        return count
