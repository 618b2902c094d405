"""配置模块：环境设置（settings）与固定目录（crm_config）"""
