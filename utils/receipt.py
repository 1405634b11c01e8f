"""PDF receipt rendering for completed checklists.

A receipt is rendered once per preview; the same bytes are shown to the
teacher and sent to storage, so ``RenderedReceipt`` exposes both the raw PDF
and its base64 form.

Copyright (c) Bryn Gwalad 2025
"""

import base64
import binascii
import logging
import os
import re
from dataclasses import dataclass
from datetime import datetime
from io import BytesIO
from typing import List, Optional
from xml.sax.saxutils import escape

from dotenv import load_dotenv
from reportlab.lib import colors
from reportlab.lib.enums import TA_CENTER
from reportlab.lib.pagesizes import A4
from reportlab.lib.styles import ParagraphStyle, getSampleStyleSheet
from reportlab.lib.units import mm
from reportlab.lib.utils import ImageReader
from reportlab.platypus import (
    HRFlowable,
    Image,
    KeepTogether,
    Paragraph,
    SimpleDocTemplate,
    Spacer,
    Table,
    TableStyle,
)

load_dotenv()

from api.models import SubmissionRecord, SubmissionStatus

RECEIPT_TITLE = os.getenv("RECEIPT_TITLE", "EduCheck - Comprovante de Materiais")
RECEIPT_SUBTITLE = os.getenv("RECEIPT_SUBTITLE", "Escola Municipal de Tecnologia")
RECEIPT_COMPRESS = os.getenv("RECEIPT_COMPRESS", "1") in ("1", "true", "True")

DATE_FORMAT = "%d/%m/%Y %H:%M"
TABLE_HEADER = ["Categoria", "Item", "Esperado", "Encontrado", "Status"]
STATUS_OK = "OK"
STATUS_DIVERGENT = "DIVERGENTE"
HEADER_FILL = colors.Color(41 / 255, 128 / 255, 185 / 255)
FOOTER_GREY = colors.Color(150 / 255, 150 / 255, 150 / 255)
SIGNATURE_SIZE = (50 * mm, 20 * mm)

logger = logging.getLogger("checklist.receipt")


@dataclass(frozen=True)
class RenderedReceipt:
    """The output of a single render call."""

    pdf_bytes: bytes

    @property
    def pdf_base64(self) -> str:
        # plain base64, no data-URI prefix
        return base64.b64encode(self.pdf_bytes).decode("ascii")


def sanitize_teacher_name(teacher_name: str) -> str:
    name = re.sub(r"\s+", "_", teacher_name).lower()
    return name.replace("/", "_").replace("\\", "_")


def build_file_name(teacher_name: str, when: Optional[datetime] = None) -> str:
    """Name under which a receipt is stored, unique per millisecond."""
    when = when or datetime.now()
    return f"checklist_{sanitize_teacher_name(teacher_name)}_{int(when.timestamp() * 1000)}.pdf"


def download_name(teacher_name: str) -> str:
    """Name of the local copy handed to the teacher after confirmation."""
    return f"checklist_{sanitize_teacher_name(teacher_name)}.pdf"


def status_label(status: SubmissionStatus) -> str:
    return "CONCLUÍDO" if status == SubmissionStatus.COMPLETED else "PENDENTE"


def table_rows(record: SubmissionRecord) -> List[List[str]]:
    """Header plus one row per item, as drawn in the receipt table."""
    rows = [list(TABLE_HEADER)]
    for item in record.items:
        rows.append([
            item.category.value,
            item.name,
            str(item.expected_quantity),
            str(item.current_quantity),
            STATUS_OK if item.expected_quantity == item.current_quantity else STATUS_DIVERGENT,
        ])
    return rows


def decode_signature(signature: str) -> bytes:
    """Decode a signature given as a data URI or as bare base64."""
    payload = signature
    if payload.startswith("data:"):
        payload = payload.split(",", 1)[-1]
    return base64.b64decode(payload)


def _signature_image(signature: str) -> Optional[Image]:
    try:
        data = decode_signature(signature)
        ImageReader(BytesIO(data)).getSize()
    except (binascii.Error, ValueError):
        logger.warning("Signature is not valid base64; rendering without image")
        return None
    except Exception:
        logger.warning("Signature could not be decoded as an image; rendering without image")
        return None
    width, height = SIGNATURE_SIZE
    image = Image(BytesIO(data), width=width, height=height)
    image.hAlign = "LEFT"
    return image


def _footer(text: str):
    def draw(canvas_obj, doc) -> None:
        canvas_obj.saveState()
        canvas_obj.setFont("Helvetica", 8)
        canvas_obj.setFillColor(FOOTER_GREY)
        canvas_obj.drawCentredString(doc.pagesize[0] / 2, 12 * mm, text)
        canvas_obj.restoreState()

    return draw


def render_receipt(record: SubmissionRecord, compress: Optional[bool] = None) -> RenderedReceipt:
    """Render ``record`` as an A4 PDF receipt."""
    if compress is None:
        compress = RECEIPT_COMPRESS
    timestamp = record.date.strftime(DATE_FORMAT)

    buffer = BytesIO()
    doc = SimpleDocTemplate(
        buffer,
        pagesize=A4,
        title=f"Checklist {record.id}",
        leftMargin=20 * mm,
        rightMargin=20 * mm,
        topMargin=15 * mm,
        bottomMargin=25 * mm,
        pageCompression=1 if compress else 0,
    )
    styles = getSampleStyleSheet()
    body = styles["BodyText"]
    title_style = ParagraphStyle("ReceiptTitle", parent=styles["Title"], fontSize=20, leading=24, alignment=TA_CENTER)
    subtitle_style = ParagraphStyle("ReceiptSubtitle", parent=body, fontSize=12, leading=16, alignment=TA_CENTER)
    info_style = ParagraphStyle("ReceiptInfo", parent=body, fontSize=10, leading=14)
    italic_style = ParagraphStyle("ReceiptItalic", parent=info_style, fontName="Helvetica-Oblique")

    elements = [
        Paragraph(escape(RECEIPT_TITLE), title_style),
        Paragraph(escape(RECEIPT_SUBTITLE), subtitle_style),
        HRFlowable(width="100%", thickness=0.5, color=colors.black, spaceBefore=4, spaceAfter=8),
    ]

    info_lines = [
        f"Professor(a): {record.teacher_name}",
        f"Data/Hora: {timestamp}",
    ]
    if record.usage_start_time and record.usage_end_time:
        info_lines.append(f"Período de Uso: {record.usage_start_time} às {record.usage_end_time}")
    info_lines.append(f"Status: {status_label(record.status)}")
    for line in info_lines:
        elements.append(Paragraph(escape(line), info_style))
    elements.append(Spacer(1, 10))

    table = Table(
        table_rows(record),
        colWidths=[35 * mm, 60 * mm, 25 * mm, 25 * mm, 25 * mm],
        repeatRows=1,
    )
    table.setStyle(
        TableStyle(
            [
                ("BACKGROUND", (0, 0), (-1, 0), HEADER_FILL),
                ("TEXTCOLOR", (0, 0), (-1, 0), colors.white),
                ("FONTNAME", (0, 0), (-1, 0), "Helvetica-Bold"),
                ("FONTSIZE", (0, 0), (-1, -1), 9),
                ("GRID", (0, 0), (-1, -1), 0.5, colors.grey),
                ("VALIGN", (0, 0), (-1, -1), "MIDDLE"),
            ]
        )
    )
    elements.append(table)

    if record.justification:
        elements.append(Spacer(1, 10))
        elements.append(Paragraph("Justificativa/Ocorrências:", info_style))
        elements.append(Paragraph(escape(record.justification), italic_style))

    if record.signature:
        block = [Spacer(1, 16), Paragraph("Assinatura Digital:", info_style)]
        image = _signature_image(record.signature)
        if image is not None:
            block.append(image)
        block.append(HRFlowable(width=SIGNATURE_SIZE[0], thickness=0.5, color=colors.black, hAlign="LEFT"))
        elements.append(KeepTogether(block))

    footer = _footer(f"Documento gerado eletronicamente em {timestamp}")
    doc.build(elements, onFirstPage=footer, onLaterPages=footer)
    return RenderedReceipt(pdf_bytes=buffer.getvalue())
