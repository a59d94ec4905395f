"""tx_scout.report: экспорт результатов (JSON) для CLI и тестов."""

from tx_scout.report.json_report import render_json

__all__ = ["render_json"]
