from __future__ import annotations

import csv
import dataclasses
import io
import json
import logging
from datetime import date, datetime
from typing import Any, Mapping, Sequence

from openpyxl import Workbook
from openpyxl.styles import Font
from reportlab.lib.pagesizes import A4
from reportlab.pdfgen import canvas

from storage.records import camel_case
from utils import ApiError


_log = logging.getLogger("exports")

MIME_TYPES = {
    "csv": "text/csv",
    "xlsx": "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
    "pdf": "application/pdf",
}


def format_cell(value: Any) -> Any:
    if value is None:
        return ""
    if isinstance(value, datetime):
        return value.date().isoformat()
    if isinstance(value, date):
        return value.isoformat()
    if isinstance(value, (dict, list, tuple)):
        return json.dumps(value, default=str)
    return value


def _as_rows(rows: Sequence[Any]) -> list[Mapping[str, Any]]:
    out = []
    for r in rows or []:
        if dataclasses.is_dataclass(r):
            # Raw values, so datetimes still export as plain dates.
            private = getattr(r, "__private__", ())
            out.append({camel_case(f.name): getattr(r, f.name) for f in dataclasses.fields(r) if f.name not in private})
        else:
            out.append(dict(r))
    return out


def _headers(rows: list[Mapping[str, Any]]) -> list[str]:
    # Column set comes from the first row, like the portal's table views.
    return list(rows[0].keys()) if rows else []


def to_csv(rows: Sequence[Any]) -> bytes:
    data = _as_rows(rows)
    if not data:
        return b""
    headers = _headers(data)
    si = io.StringIO()
    cw = csv.writer(si)
    cw.writerow(headers)
    for r in data:
        cw.writerow([format_cell(r.get(h)) for h in headers])
    return si.getvalue().encode("utf-8")


def to_xlsx(rows: Sequence[Any], *, sheet_title: str = "Data") -> bytes:
    data = _as_rows(rows)
    wb = Workbook()
    ws = wb.active
    ws.title = sheet_title[:31] or "Data"
    if data:
        headers = _headers(data)
        ws.append(headers)
        for r in data:
            ws.append([format_cell(r.get(h)) for h in headers])
        for cell in ws[1]:
            cell.font = Font(bold=True)
    out = io.BytesIO()
    wb.save(out)
    return out.getvalue()


def _fit(c: canvas.Canvas, text: str, width: float, font: str, size: int) -> str:
    if c.stringWidth(text, font, size) <= width:
        return text
    while text and c.stringWidth(text + "...", font, size) > width:
        text = text[:-1]
    return text + "..."


def to_pdf(rows: Sequence[Any], *, title: str) -> bytes:
    data = _as_rows(rows)
    out = io.BytesIO()
    c = canvas.Canvas(out, pagesize=A4)
    width, height = A4
    margin = 50
    y = height - margin

    c.setFont("Helvetica-Bold", 18)
    c.drawCentredString(width / 2, y, str(title or "Export"))
    y -= 40

    if not data:
        c.setFont("Helvetica", 11)
        c.drawString(margin, y, "No data available")
    else:
        headers = _headers(data)
        col_w = (width - 2 * margin) / len(headers)

        def draw_header():
            nonlocal y
            c.setFont("Helvetica-Bold", 10)
            for i, h in enumerate(headers):
                c.drawString(margin + i * col_w, y, _fit(c, str(h), col_w - 4, "Helvetica-Bold", 10))
            y -= 18
            c.setFont("Helvetica", 9)

        draw_header()
        for r in data:
            if y < margin:
                c.showPage()
                y = height - margin
                draw_header()
            for i, h in enumerate(headers):
                c.drawString(margin + i * col_w, y, _fit(c, str(format_cell(r.get(h))), col_w - 4, "Helvetica", 9))
            y -= 14

    c.showPage()
    c.save()
    return out.getvalue()


def export_rows(rows: Sequence[Any], fmt: str, *, title: str = "Export") -> tuple[bytes, str, str]:
    """Render ``rows`` (records or mappings) as csv / xlsx / pdf; returns (body, mime type, extension)."""
    kind = str(fmt or "").strip().lower()
    if kind == "csv":
        body = to_csv(rows)
    elif kind in {"xlsx", "excel"}:
        kind = "xlsx"
        body = to_xlsx(rows)
    elif kind == "pdf":
        body = to_pdf(rows, title=title)
    else:
        raise ApiError("BAD_REQUEST", f"Unsupported export format: {fmt!r}")
    _log.info("export fmt=%s rows=%s bytes=%s", kind, len(rows or []), len(body))
    return body, MIME_TYPES[kind], kind
