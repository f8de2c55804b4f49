from pydantic import BaseModel


class ToolRiskProfile(BaseModel):
    '''
    工具风险特征

    modifies_persistent_data: 是否写数据库
    irreversible: 是否不可撤销
    deletes_data: 是否删除数据（replace_all 导入、删除分组）
    affects_multiple_records: 是否一次影响多条记录
    '''
    modifies_persistent_data: bool = False
    irreversible: bool = False
    deletes_data: bool = False
    affects_multiple_records: bool = False
