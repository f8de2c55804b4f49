'''集中读取运行配置（环境变量 / .env），不产生其他副作用
会被 logger、db.session、xml ingest、session snapshot 等模块读取'''
# piecesync/config.py
import os
from typing import List
from dotenv import load_dotenv

# 加载环境变量
load_dotenv()


def _split_env_list(name: str, default: str) -> List[str]:
    raw = os.getenv(name, default)
    return [v.strip().upper() for v in raw.split(",") if v.strip()]


class Config:
    """运行配置"""

    # 数据库配置
    DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./piecesync.db")

    # 日志配置
    LOG_DIR = os.getenv("PIECESYNC_LOG_DIR", "logs")
    LOG_LEVEL = os.getenv("PIECESYNC_LOG_LEVEL", "INFO")

    # 导入文件配置：无 XML 编码声明时按 Latin-1 解码
    SOURCE_ENCODING = os.getenv("PIECESYNC_SOURCE_ENCODING", "ISO-8859-1")
    ROOT_MARKERS = _split_env_list("PIECESYNC_ROOT_MARKERS", "DETALHAMENTOTEKLA,PROJECT")
    ENTRY_MARKERS = _split_env_list("PIECESYNC_ENTRY_MARKERS", "PECA,PART")
    REPORT_SEPARATOR = os.getenv("PIECESYNC_REPORT_SEPARATOR", ", ")

    # 会话文件版本号，不一致直接拒绝
    SESSION_VERSION = os.getenv("PIECESYNC_SESSION_VERSION", "1.0")

    # 导入时新建项目的默认状态
    DEFAULT_PROJECT_STATUS = os.getenv("PIECESYNC_DEFAULT_PROJECT_STATUS", "Programar")


config = Config()
