"""全局配置管理

所有用户可配置项均通过 .env 文件设置，运行时自动加载到此处。

使用方式：
    手动创建 .env 文件，按需覆盖下列字段（例如 DATABASE_URL、RECORD_DELETE_SECRET）
"""
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """应用配置 - 所有字段均可通过 .env 或环境变量覆盖"""

    # ========== 数据库 ==========
    database_url: str = "sqlite:///data/crm.db"

    # ========== 文件存储 ==========
    storage_root: str = "data/customer-files"

    # ========== 删除确认口令 ==========
    # 两个口令分别对应不同的确认门，互不共用
    record_delete_secret: str = "96962779"
    file_delete_secret: str = "96962779"

    # ========== 部门显示名称 ==========
    uncategorized_name: str = "未分類"
    all_departments_name: str = "所有客戶"

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        case_sensitive = False
        extra = "ignore"


# 全局配置实例
settings = Settings()
