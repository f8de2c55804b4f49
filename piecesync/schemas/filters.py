# piecesync/schemas/filters.py
from typing import Optional, Tuple
from pydantic import BaseModel, ConfigDict

from piecesync.schemas.piece import PieceRecord, ImportHeader


class FilterState(BaseModel):
    '''
    名称模糊搜索 + 三个多选维度（类型 / 截面 / 混凝土等级）
    空选择表示该维度不过滤
    '''
    model_config = ConfigDict(frozen=True)

    name: str = ""
    types: Tuple[str, ...] = ()
    sections: Tuple[str, ...] = ()
    material_classes: Tuple[str, ...] = ()

    @property
    def is_empty(self) -> bool:
        return not (self.name or self.types or self.sections or self.material_classes)


class FacetOptions(BaseModel):
    model_config = ConfigDict(frozen=True)

    types: Tuple[str, ...] = ()
    sections: Tuple[str, ...] = ()
    material_classes: Tuple[str, ...] = ()


class AnalysisSession(BaseModel):
    '''
    分析会话（不可变值）：applied 决定可见构件，staged 决定界面与级联选项
    所有修改都通过 filter_service 的纯函数返回新的会话
    '''
    model_config = ConfigDict(frozen=True)

    dataset: Tuple[PieceRecord, ...] = ()
    header: Optional[ImportHeader] = None
    applied: FilterState = FilterState()
    staged: FilterState = FilterState()
    released_ids: Tuple[str, ...] = ()
    display_label: str = ""
