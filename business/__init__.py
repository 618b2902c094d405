"""业务规则模块：破坏性操作前的确认门"""
