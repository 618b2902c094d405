"""
目录配置接口 - 客户管理中的固定选项集合

客户状态、付款方式、服务项目、广告平台等都是固定的目录数据，
实体仓库用它们做本地校验，视图用它们显示名称。
新部署可以实现自己的 CatalogConfig 替换默认目录。
"""
from abc import ABC, abstractmethod
from typing import Dict, List, Optional, Tuple


# 固定的部门代码
ALL_DEPARTMENTS = "all"
UNCATEGORIZED = "uncategorized"
PINNED_DEPARTMENTS = (ALL_DEPARTMENTS, UNCATEGORIZED)

# 未分類部门持久化时的排序值，保证刷新后排在最后
UNCATEGORIZED_SORT_ORDER = 9999


class CatalogConfig(ABC):
    """目录配置抽象基类"""

    @abstractmethod
    def get_customer_statuses(self) -> List[Tuple[str, str]]:
        """获取客户状态列表 (id, 显示名称)"""
        pass

    @abstractmethod
    def get_payment_methods(self) -> List[Tuple[str, str]]:
        """获取付款方式列表"""
        pass

    @abstractmethod
    def get_payment_accounts(self) -> List[Tuple[str, str]]:
        """获取收款帐户列表"""
        pass

    @abstractmethod
    def get_billing_cycles(self) -> List[Tuple[str, str]]:
        """获取计费周期列表"""
        pass

    @abstractmethod
    def get_service_items(self) -> List[Tuple[str, str]]:
        """获取服务项目目录"""
        pass

    @abstractmethod
    def get_advertising_platforms(self) -> List[Tuple[str, str]]:
        """获取广告平台列表"""
        pass

    @abstractmethod
    def get_advertising_payment_methods(self) -> Dict[str, Dict]:
        """获取广告付费方式，以及每种方式必填的明细字段"""
        pass

    # ---------- 通用查询 ----------

    def ids(self, options: List[Tuple[str, str]]) -> List[str]:
        return [option_id for option_id, _ in options]

    def display_name(self, options: List[Tuple[str, str]],
                     option_id: str) -> Optional[str]:
        """按 id 查找显示名称，找不到返回 None"""
        for candidate, name in options:
            if candidate == option_id:
                return name
        return None

    def service_name(self, service_id_or_name: str) -> Optional[str]:
        """把服务 id 或名称统一解析为目录中的名称"""
        for service_id, name in self.get_service_items():
            if service_id_or_name in (service_id, name):
                return name
        return None

    def required_advertising_fields(self, payment_method: str) -> List[str]:
        method = self.get_advertising_payment_methods().get(payment_method)
        if method is None:
            return []
        return list(method["required"])


class DefaultCatalogConfig(CatalogConfig):
    """数位行销服务业默认目录"""

    def get_customer_statuses(self) -> List[Tuple[str, str]]:
        return [
            ("active", "進行中"),
            ("paused", "暫停"),
            ("inactive", "終止"),
        ]

    def get_payment_methods(self) -> List[Tuple[str, str]]:
        return [
            ("transfer", "匯款"),
            ("onlinePayment", "線上付款連結"),
            ("cash", "現金"),
            ("headquarterToDistrict", "總部返區處"),
            ("districtToHeadquarter", "區處返總部"),
        ]

    def get_payment_accounts(self) -> List[Tuple[str, str]]:
        return [
            ("headquarter", "總部帳戶"),
            ("district", "區處帳戶"),
        ]

    def get_billing_cycles(self) -> List[Tuple[str, str]]:
        return [
            ("monthly", "月繳"),
            ("quarterly", "季繳"),
            ("semiannual", "半年繳"),
            ("annual", "年繳"),
            ("once", "單次"),
        ]

    def get_service_items(self) -> List[Tuple[str, str]]:
        return [
            ("1v1", "1v1 輔導"),
            ("social", "社群代操"),
            ("advert", "廣告監測及回報"),
            ("custom", "客製化店家方案"),
            ("special", "特別專案"),
            ("video", "影音拍攝"),
            ("bos", "BOS系統"),
        ]

    def get_advertising_platforms(self) -> List[Tuple[str, str]]:
        return [
            ("meta", "Meta 廣告"),
            ("google", "Google 廣告"),
            ("line", "LINE 廣告"),
            ("tiktok", "TikTok 廣告"),
        ]

    def get_advertising_payment_methods(self) -> Dict[str, Dict]:
        return {
            "percentage": {
                "name": "服務費抽成",
                "required": ["service_fee_percentage"],
            },
            "prepaid": {
                "name": "預付儲值",
                "required": ["prepaid_amount", "placement_limit"],
            },
            "hybrid": {
                "name": "預付加抽成",
                "required": [
                    "service_fee_percentage", "prepaid_amount",
                    "placement_limit",
                ],
            },
        }


# 全局目录配置实例（可以在启动时替换）
catalog_config: CatalogConfig = DefaultCatalogConfig()
