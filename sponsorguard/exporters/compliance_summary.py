from __future__ import annotations

from io import BytesIO
from typing import Any, Iterable

import pandas as pd
from openpyxl.styles import Font, PatternFill
from openpyxl.utils import get_column_letter

COLUMNS = [
    "worker_id",
    "name",
    "job_title",
    "soc_code",
    "cos_reference",
    "assignment_date",
    "overall_status",
    "overall_risk",
    "global_risk_score",
    "red_flags",
    "assessed_agents",
    "pending_agents",
    "agent_types",
    "last_assessed_at",
]

EXPORT_FORMATS = {
    "csv": "text/csv",
    "xlsx": "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
}

_STATUS_FILLS = {
    "SERIOUS_BREACH": "F8D7DA",
    "BREACH": "FFF3CD",
    "COMPLIANT": "D4EDDA",
}


def directory_frame(rows: Iterable[dict[str, Any]]) -> pd.DataFrame:
    return pd.DataFrame(list(rows), columns=COLUMNS)


def export_csv(rows: Iterable[dict[str, Any]]) -> bytes:
    df = directory_frame(rows)
    return df.to_csv(index=False).encode("utf-8")


def export_xlsx(rows: Iterable[dict[str, Any]]) -> bytes:
    df = directory_frame(rows)
    buffer = BytesIO()
    with pd.ExcelWriter(buffer, engine="openpyxl") as writer:
        df.to_excel(writer, index=False, sheet_name="Compliance")
        sheet = writer.sheets["Compliance"]
        for cell in sheet[1]:
            cell.font = Font(bold=True)
        status_col = COLUMNS.index("overall_status") + 1
        for row in sheet.iter_rows(min_row=2, min_col=status_col, max_col=status_col):
            colour = _STATUS_FILLS.get(str(row[0].value))
            if colour:
                row[0].fill = PatternFill(start_color=colour, end_color=colour, fill_type="solid")
        for index, column in enumerate(COLUMNS, start=1):
            width = max([len(column), *(len(str(value)) for value in df[column].tolist())])
            sheet.column_dimensions[get_column_letter(index)].width = min(width + 2, 60)
        sheet.freeze_panes = "A2"
    return buffer.getvalue()


def export_directory(rows: Iterable[dict[str, Any]], fmt: str) -> tuple[bytes, str]:
    """Return the file content and its media type."""

    if fmt == "xlsx":
        return export_xlsx(rows), EXPORT_FORMATS["xlsx"]
    return export_csv(rows), EXPORT_FORMATS["csv"]
