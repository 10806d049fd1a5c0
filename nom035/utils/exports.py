from __future__ import annotations

import io
import json
from typing import Any

import pandas as pd

from ..domain.models import NOM35Result, RiskLevel
from ..domain.services import get_recommendations


def _to_iso(val):
    if hasattr(val, "isoformat"):
        return val.isoformat()
    return val


def risk_level_to_dict(level: RiskLevel) -> dict[str, Any]:
    return {
        "level": level.level,
        "level_en": level.level_en,
        "color": level.color,
        "description_es": level.description_es,
        "description_en": level.description_en,
    }


def result_to_dict(result: NOM35Result) -> dict[str, Any]:
    """Plain-JSON view of a report, field names as the presenter expects them."""
    return {
        "guide_type": result.guide_type.value,
        "overall_score": result.overall_score,
        "overall_risk": risk_level_to_dict(result.overall_risk),
        "category_risks": [
            {
                "category_id": c.category_id,
                "category_name_es": c.category_name_es,
                "category_name_en": c.category_name_en,
                "score": c.score,
                "max_score": c.max_score,
                "risk_level": risk_level_to_dict(c.risk_level),
            }
            for c in result.category_risks
        ],
        "total_questions": result.total_questions,
        "answered_questions": result.answered_questions,
        "completion_date": _to_iso(result.completion_date),
    }


def make_json_export_payload(
    result: NOM35Result, assessment_id: str | None = None, language: str = "es"
) -> str:
    payload = {
        "assessment_id": assessment_id,
        "report": result_to_dict(result),
        "recommendations": get_recommendations(result.overall_risk.tier, language),
    }
    return json.dumps(payload, indent=2, ensure_ascii=False)


def make_xlsx_export_bytes(result: NOM35Result, language: str = "es") -> bytes:
    """Single-sheet workbook: one row per category, then the overall line."""
    en = language == "en"
    rows = [
        {
            "Category": c.category_name_en if en else c.category_name_es,
            "Score": c.score,
            "MaxScore": c.max_score,
            "RiskLevel": c.risk_level.level_en if en else c.risk_level.level,
            "Description": c.risk_level.description(language),
        }
        for c in result.category_risks
    ]
    rows.append(
        {
            "Category": "Overall" if en else "Total",
            "Score": result.overall_score,
            "MaxScore": sum(c.max_score for c in result.category_risks),
            "RiskLevel": result.overall_risk.level_en if en else result.overall_risk.level,
            "Description": result.overall_risk.description(language),
        }
    )
    frame = pd.DataFrame(rows, columns=["Category", "Score", "MaxScore", "RiskLevel", "Description"])

    bio = io.BytesIO()
    with pd.ExcelWriter(bio, engine="xlsxwriter") as writer:
        frame.to_excel(writer, index=False, sheet_name="Report")
        sheet = writer.sheets["Report"]
        sheet.set_column(0, 0, 40)
        sheet.set_column(4, 4, 70)
        start = len(frame) + 3
        sheet.write(start, 0, "Guide" if en else "Guía")
        sheet.write(start, 1, result.guide_type.value)
        sheet.write(start + 1, 0, "Answered" if en else "Respondidas")
        sheet.write(start + 1, 1, f"{result.answered_questions}/{result.total_questions}")
        sheet.write(start + 2, 0, "Generated" if en else "Generado")
        sheet.write(start + 2, 1, result.completion_date.isoformat())
    return bio.getvalue()
