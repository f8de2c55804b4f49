# piecesync/services/filter_service.py
'''
级联多选过滤（纯函数）：所有函数都不修改入参，返回新的 AnalysisSession / 列表

- visible_pieces 只由 applied 决定
- available_options 只由 staged 决定：每个维度的可选项只受另外两个维度的已选项约束
'''
import re
from typing import Any, Callable, Iterable, List, Optional, Sequence, Tuple

from piecesync.schemas.filters import AnalysisSession, FacetOptions, FilterState
from piecesync.schemas.piece import ImportHeader, PieceRecord

_DIGITS = re.compile(r"(\d+)")

NUMERIC_SORT_FIELDS = ("quantity", "length", "weight", "unit_volume")
NATURAL_SORT_FIELDS = ("name", "section")


def natural_key(value: Any) -> Tuple:
    """Numeric-aware sort key: "P2" < "P10"."""
    parts = _DIGITS.split(str(value).casefold())
    return tuple((0, int(p), "") if p.isdigit() else (1, 0, p) for p in parts if p != "")


def _in_selection(value: str, selected: Sequence[str]) -> bool:
    return not selected or value in selected


def matches(piece, state: FilterState) -> bool:
    '''
    名称子串（忽略大小写）AND 类型 AND 截面 AND 混凝土等级
    '''
    if state.name and state.name.casefold() not in (piece.name or "").casefold():
        return False
    return (
        _in_selection(piece.piece_type, state.types)
        and _in_selection(piece.section, state.sections)
        and _in_selection(piece.material_class, state.material_classes)
    )


def filter_pieces(pieces: Iterable, state: FilterState) -> List:
    return [p for p in pieces if matches(p, state)]


def _unique_sorted(values: Iterable[str], key: Optional[Callable] = None) -> Tuple[str, ...]:
    return tuple(sorted(set(values), key=key))


def available_options(pieces: Sequence, staged: FilterState) -> FacetOptions:
    '''
    每个维度的可选项：用另外两个维度的 staged 选择过滤全量数据后取唯一值
    名称搜索不参与选项计算
    '''
    for_types = [
        p for p in pieces
        if _in_selection(p.section, staged.sections) and _in_selection(p.material_class, staged.material_classes)
    ]
    for_sections = [
        p for p in pieces
        if _in_selection(p.piece_type, staged.types) and _in_selection(p.material_class, staged.material_classes)
    ]
    for_classes = [
        p for p in pieces
        if _in_selection(p.piece_type, staged.types) and _in_selection(p.section, staged.sections)
    ]
    return FacetOptions(
        types=_unique_sorted(p.piece_type for p in for_types),
        sections=_unique_sorted((p.section for p in for_sections), key=natural_key),
        material_classes=_unique_sorted(p.material_class for p in for_classes),
    )


def sort_pieces(pieces: Sequence, key: str = "name", descending: bool = False) -> List:
    '''
    数值字段按数值排序，name/section 按自然顺序，其余按字符串
    '''
    if key in NUMERIC_SORT_FIELDS:
        sort_key = lambda p: getattr(p, key) or 0  # noqa: E731
    elif key in NATURAL_SORT_FIELDS:
        sort_key = lambda p: natural_key(getattr(p, key))  # noqa: E731
    else:
        sort_key = lambda p: str(getattr(p, key)).casefold()  # noqa: E731
    return sorted(pieces, key=sort_key, reverse=descending)


# =========
# Session transitions
# =========
def new_session(
    pieces: Sequence[PieceRecord],
    header: Optional[ImportHeader] = None,
    display_label: str = "",
) -> AnalysisSession:
    return AnalysisSession(dataset=tuple(pieces), header=header, display_label=display_label)


def stage(
    session: AnalysisSession,
    *,
    name: Optional[str] = None,
    types: Optional[Iterable[str]] = None,
    sections: Optional[Iterable[str]] = None,
    material_classes: Optional[Iterable[str]] = None,
) -> AnalysisSession:
    '''
    修改 staged 过滤条件（未传的维度保持不变），applied 不受影响
    '''
    update = {}
    if name is not None:
        update["name"] = name
    if types is not None:
        update["types"] = tuple(types)
    if sections is not None:
        update["sections"] = tuple(sections)
    if material_classes is not None:
        update["material_classes"] = tuple(material_classes)
    return session.model_copy(update={"staged": session.staged.model_copy(update=update)})


def apply(session: AnalysisSession) -> AnalysisSession:
    return session.model_copy(update={"applied": session.staged})


def clear(session: AnalysisSession) -> AnalysisSession:
    return session.model_copy(update={"applied": FilterState(), "staged": FilterState()})


def toggle_released(session: AnalysisSession, identifier: str) -> AnalysisSession:
    released = list(session.released_ids)
    if identifier in released:
        released.remove(identifier)
    else:
        released.append(identifier)
    return session.model_copy(update={"released_ids": tuple(released)})


def visible_pieces(session: AnalysisSession) -> List[PieceRecord]:
    return filter_pieces(session.dataset, session.applied)


def session_options(session: AnalysisSession) -> FacetOptions:
    return available_options(session.dataset, session.staged)
