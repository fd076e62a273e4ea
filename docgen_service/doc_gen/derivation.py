"""
派生字段引擎 - 计算派生字段

职责：
1. 根据请求数据计算模板所需的统计/格式化字段
2. 填充 DocumentModel.derived

约束：
- 纯函数：只依赖传入的数据与元数据，不读取时钟
- generated_date 必须已由 builder 回填

测试要点：
- test_derive_dates: 日期格式化
- test_derive_title_fallback: 标题缺省回退
- test_derive_requirement_stats: 需求按优先级统计
- test_derive_findings_by_severity: 安全发现按严重度统计
- test_derive_pass_rate: 测试通过率
"""

from __future__ import annotations

from collections.abc import Iterable
from typing import Any

from ..models import DerivedFields, DocumentMetadata

SEVERITY_ORDER = ("critical", "high", "medium", "low", "info")
PRIORITY_ORDER = ("must", "should", "could", "wont", "high", "medium", "low")
PASSING_STATUSES = {"passed", "pass"}
UNSPECIFIED = "unspecified"


class DerivationEngine:
    """派生字段计算引擎"""

    def compute(
        self,
        data: dict[str, Any],
        metadata: DocumentMetadata,
        default_title: str = "",
    ) -> DerivedFields:
        """计算所有派生字段"""
        values: dict[str, Any] = {}

        # === 日期派生 ===
        if metadata.generated_date is not None:
            values["generated_date_text"] = metadata.generated_date.strftime("%B %d, %Y")
            values["generated_date_iso"] = metadata.generated_date.isoformat()

        # === 标题派生 ===
        title = (metadata.title or "").strip()
        values["document_title"] = title or default_title

        # === 需求统计 ===
        requirements = self._items(data.get("requirements"))
        values["requirement_count"] = len(requirements)
        values["requirements_by_priority"] = self._count_by(
            requirements, "priority", PRIORITY_ORDER
        )
        values["stakeholder_count"] = len(self._items(data.get("stakeholders")))

        # === 安全发现统计 ===
        findings = self._items(data.get("findings"))
        values["finding_count"] = len(findings)
        values["findings_by_severity"] = self._count_by(
            findings, "severity", SEVERITY_ORDER, keep_zero=True
        )

        # === 审计控制项统计 ===
        controls = self._items(data.get("controls"))
        values["control_count"] = len(controls)
        values["controls_by_status"] = self._count_by(controls, "status")

        # === 测试用例统计 ===
        test_cases = self._items(data.get("test_cases"))
        values["test_case_count"] = len(test_cases)
        values["test_cases_by_status"] = self._count_by(test_cases, "status")
        values["pass_rate"] = self._pass_rate(test_cases)

        return DerivedFields(**values)

    @staticmethod
    def _items(value: Any) -> list[dict[str, Any]]:
        """取出列表中的对象元素"""
        if not isinstance(value, list):
            return []
        return [item for item in value if isinstance(item, dict)]

    @staticmethod
    def _normalize(value: Any) -> str:
        text = str(value).strip().lower() if value is not None else ""
        return text or UNSPECIFIED

    def _count_by(
        self,
        items: Iterable[dict[str, Any]],
        key: str,
        order: tuple[str, ...] = (),
        keep_zero: bool = False,
    ) -> dict[str, int]:
        """按字段值计数；已知取值按 order 排前，其余按字母序"""
        counts: dict[str, int] = {}
        for item in items:
            label = self._normalize(item.get(key))
            counts[label] = counts.get(label, 0) + 1

        result: dict[str, int] = {}
        for label in order:
            if label in counts or keep_zero:
                result[label] = counts.get(label, 0)
        for label in sorted(counts):
            if label not in result:
                result[label] = counts[label]
        return result

    def _pass_rate(self, test_cases: list[dict[str, Any]]) -> str | None:
        """通过率（百分比，保留一位小数）"""
        if not test_cases:
            return None
        passed = sum(
            1 for case in test_cases if self._normalize(case.get("status")) in PASSING_STATUSES
        )
        return f"{passed * 100 / len(test_cases):.1f}%"
