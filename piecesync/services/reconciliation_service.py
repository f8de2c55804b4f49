# piecesync/services/reconciliation_service.py
from piecesync.errors import ReconciliationConflict
from piecesync.logger import get_logger
from piecesync.schemas.piece import ImportHeader
from piecesync.schemas.reconciliation import ReconciliationOutcome
from piecesync.services.piece_store import PieceStore

logger = get_logger(__name__)


def same_client_name(a: str, b: str) -> bool:
    return (a or "").strip().casefold() == (b or "").strip().casefold()


class ReconciliationService:
    """
    Match an import header against the owner's existing Projects/Clients.

    Outcomes:
    - matched:     same project code, same client name (case-insensitive)
    - conflict:    same project code, different client name -> never resolved here
    - new_project: unknown code; references an existing client when the name matches,
                   otherwise names the client that has to be created first

    This service never creates entities; creation is an explicit commit step
    (ProjectService.create_from_outcome).
    """

    def __init__(self, store: PieceStore):
        self.store = store

    def resolve(self, owner_id: str, header: ImportHeader) -> ReconciliationOutcome:
        '''
        :param owner_id: 所属账号
        :param header: 批次表头（第一个文件）
        :return: ReconciliationOutcome
        '''
        code = header.project_code.strip()
        project = self.store.find_project_by_code(owner_id, code)

        if project is not None:
            if not same_client_name(project.client_name, header.client_name):
                logger.warning(
                    f"[reconcile] conflict on project {code}: "
                    f"existing client '{project.client_name}' vs file client '{header.client_name}'"
                )
                return ReconciliationOutcome.conflict(
                    project_code=code,
                    existing_client_name=project.client_name,
                    header_client_name=header.client_name,
                )
            logger.info(f"[reconcile] matched project {code} -> {project.id}")
            return ReconciliationOutcome.matched(project_code=code, project_id=project.id)

        client = self.store.find_client_by_name(owner_id, header.client_name)
        logger.info(
            f"[reconcile] new project {code}, "
            f"client {'found: ' + client.id if client else 'to create: ' + header.client_name}"
        )
        return ReconciliationOutcome.new_project(
            project_code=code,
            suggested_name=header.project_name or code,
            existing_client_id=client.id if client else None,
            client_name_to_create=None if client else header.client_name.strip(),
        )

    def resolve_or_raise(self, owner_id: str, header: ImportHeader) -> ReconciliationOutcome:
        '''
        与 resolve 相同，但冲突时抛出 ReconciliationConflict
        '''
        outcome = self.resolve(owner_id, header)
        if outcome.is_conflict:
            raise ReconciliationConflict(
                project_code=outcome.project_code,
                existing_client_name=outcome.existing_client_name,
                header_client_name=outcome.header_client_name,
            )
        return outcome
