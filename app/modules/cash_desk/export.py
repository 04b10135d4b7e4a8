"""
Exportación de movimientos de caja a Excel (openpyxl) o CSV.
"""

import csv
import io
import logging
from datetime import date, datetime
from decimal import Decimal
from typing import Any, Dict, List

from fastapi import Response
from openpyxl import Workbook
from openpyxl.styles import Font, PatternFill, Alignment
from openpyxl.utils import get_column_letter

logger = logging.getLogger(__name__)

XLSX_MEDIA_TYPE = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"

# campo -> encabezado
MOVEMENT_COLUMNS = {
    "invoice_number": "Factura",
    "order_id": "Pedido",
    "payment_method": "Método",
    "total": "Total",
    "tip": "Propina",
    "created_at": "Fecha",
    "status": "Estado",
}


def format_csv_value(value: Any) -> str:
    if value is None:
        return ""
    elif isinstance(value, Decimal):
        return str(value)
    elif isinstance(value, (date, datetime)):
        return value.isoformat()
    elif hasattr(value, "value"):
        return str(value.value)
    else:
        return str(value)


def create_csv_response(data: List[Dict[str, Any]], filename: str, headers: Dict[str, str]) -> Response:
    """Respuesta CSV con encabezados personalizados"""
    output = io.StringIO()
    fieldnames = list(headers.keys())
    writer = csv.DictWriter(output, fieldnames=fieldnames, extrasaction="ignore")
    writer.writerow(headers)
    for row in data:
        writer.writerow({key: format_csv_value(row.get(key)) for key in fieldnames})

    csv_content = output.getvalue()
    output.close()

    return Response(
        content=csv_content,
        media_type="text/csv",
        headers={
            "Content-Disposition": f"attachment; filename={filename}",
            "Content-Type": "text/csv; charset=utf-8"
        }
    )


def _xlsx_value(key: str, value: Any) -> Any:
    if value is None:
        return ""
    if isinstance(value, Decimal):
        return float(value)
    if isinstance(value, datetime):
        # openpyxl no admite fechas con zona horaria
        return value.replace(tzinfo=None)
    if hasattr(value, "value"):
        return value.value
    return value


def build_movements_xlsx(movements: List[Dict[str, Any]]) -> bytes:
    wb = Workbook()
    ws = wb.active
    ws.title = "Movimientos"

    header_font = Font(bold=True, color="FFFFFF")
    header_fill = PatternFill(start_color="366092", end_color="366092", fill_type="solid")
    header_alignment = Alignment(horizontal="center", vertical="center")

    keys = list(MOVEMENT_COLUMNS.keys())
    for col, key in enumerate(keys, start=1):
        cell = ws.cell(row=1, column=col, value=MOVEMENT_COLUMNS[key])
        cell.font = header_font
        cell.fill = header_fill
        cell.alignment = header_alignment

    for row_idx, movement in enumerate(movements, start=2):
        for col, key in enumerate(keys, start=1):
            ws.cell(row=row_idx, column=col, value=_xlsx_value(key, movement.get(key)))

    for column in ws.columns:
        max_length = max(len(str(cell.value or "")) for cell in column)
        ws.column_dimensions[get_column_letter(column[0].column)].width = min(max_length + 2, 50)

    output = io.BytesIO()
    wb.save(output)
    return output.getvalue()


def export_movements(movements: List[Dict[str, Any]], cuadre_id: int, export_format: str = "xlsx") -> Response:
    if export_format == "csv":
        return create_csv_response(movements, f"cuadre-{cuadre_id}-movimientos.csv", MOVEMENT_COLUMNS)

    content = build_movements_xlsx(movements)
    logger.info(f"Exportados {len(movements)} movimientos del cuadre {cuadre_id}")
    return Response(
        content=content,
        media_type=XLSX_MEDIA_TYPE,
        headers={"Content-Disposition": f"attachment; filename=cuadre-{cuadre_id}-movimientos.xlsx"}
    )
