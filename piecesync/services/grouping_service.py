# piecesync/services/grouping_service.py
from typing import Dict, List, Sequence

from piecesync.errors import CorruptBatchError
from piecesync.logger import get_logger
from piecesync.schemas.piece import GroupKey, PieceGroupData, PieceRecord

logger = get_logger(__name__)


def record_key(record: PieceRecord) -> GroupKey:
    return (
        record.name,
        record.piece_type,
        record.section,
        record.length,
        record.weight,
        record.unit_volume,
        record.material_class,
    )


class GroupingService:
    """
    Aggregate PieceRecords sharing the full descriptive tuple into PieceGroupData.

    Rules:
    - key = (name, type, section, length, weight, unit_volume, material_class), exact equality
    - piece_ids = ordered union of member identifiers, no duplicates
    - quantity = number of identifiers when the source lists them,
      declared quantity otherwise (aggregate-only reports)
    - an identifier in two different groups means a corrupt batch
    """

    def group(self, records: Sequence[PieceRecord]) -> List[PieceGroupData]:
        '''
        分组，保持首次出现顺序

        :param records: 原始明细
        :return: 分组结果
        :raises CorruptBatchError: 同一单件编号出现在两个不同分组
        '''
        buckets: Dict[GroupKey, dict] = {}
        for record in records:
            key = record_key(record)
            bucket = buckets.setdefault(key, {"ids": {}, "declared": 0})
            if record.piece_ids:
                for piece_id in record.piece_ids:
                    bucket["ids"].setdefault(piece_id, None)  # dict 保序去重
            else:
                # 无单件编号的明细按申报数量计数
                bucket["declared"] += record.quantity

        groups: List[PieceGroupData] = []
        owner_by_id: Dict[str, GroupKey] = {}
        duplicated = set()
        for key, bucket in buckets.items():
            ids = tuple(bucket["ids"])
            for piece_id in ids:
                if piece_id in owner_by_id:
                    duplicated.add(piece_id)
                owner_by_id[piece_id] = key

            name, piece_type, section, length, weight, unit_volume, material_class = key
            groups.append(PieceGroupData(
                name=name,
                piece_type=piece_type,
                section=section,
                length=length,
                weight=weight,
                unit_volume=unit_volume,
                material_class=material_class,
                quantity=len(ids) + bucket["declared"],
                piece_ids=ids,
            ))

        if duplicated:
            raise CorruptBatchError(
                f"instance identifiers assigned to more than one piece group: {sorted(duplicated)}",
                piece_ids=list(duplicated),
            )

        logger.info(f"[group] records={len(records)} groups={len(groups)}")
        return groups

    @staticmethod
    def select(groups: Sequence[PieceGroupData], names: Sequence[str]) -> List[PieceGroupData]:
        '''
        按构件编号挑选要导入的分组（用户可只导入一部分）
        '''
        wanted = set(names)
        return [g for g in groups if g.name in wanted]
