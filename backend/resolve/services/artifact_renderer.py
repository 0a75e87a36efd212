"""Render generated legal documents to PDF with reportlab."""
from __future__ import annotations

import io
from datetime import datetime
from typing import Optional
from xml.sax.saxutils import escape

from reportlab.lib.enums import TA_LEFT
from reportlab.lib.pagesizes import A4
from reportlab.lib.styles import ParagraphStyle, getSampleStyleSheet
from reportlab.lib.units import cm
from reportlab.platypus import Paragraph, SimpleDocTemplate, Spacer


def render_pdf(title: str, body: str, subtitle: Optional[str] = None) -> bytes:
    """
    Lay out *body* (plain text, blank-line separated paragraphs) under a
    title block and return the PDF bytes.
    """
    buf = io.BytesIO()
    doc = SimpleDocTemplate(
        buf,
        pagesize=A4,
        leftMargin=2.5 * cm,
        rightMargin=2.5 * cm,
        topMargin=2.5 * cm,
        bottomMargin=2.5 * cm,
        title=title,
    )

    styles = getSampleStyleSheet()
    title_style = ParagraphStyle(
        "DocTitle",
        parent=styles["Heading1"],
        fontSize=16,
        spaceAfter=6,
    )
    meta_style = ParagraphStyle(
        "DocMeta",
        parent=styles["Normal"],
        fontSize=9,
        textColor="#555555",
        spaceAfter=14,
    )
    body_style = ParagraphStyle(
        "DocBody",
        parent=styles["Normal"],
        fontSize=11,
        leading=16,
        alignment=TA_LEFT,
        spaceAfter=8,
    )

    story = [Paragraph(escape(title), title_style)]
    meta = f"Prepared {datetime.utcnow().strftime('%d %B %Y')}"
    if subtitle:
        meta = f"{subtitle} | {meta}"
    story.append(Paragraph(escape(meta), meta_style))

    for block in (body or "").split("\n\n"):
        block = block.strip()
        if not block:
            continue
        story.append(Paragraph(escape(block).replace("\n", "<br/>"), body_style))
        story.append(Spacer(1, 4))

    doc.build(story)
    return buf.getvalue()
