# ipd/utils/discharge_pdf.py
"""
Utility to generate the discharge summary PDF using reportlab.
"""

from datetime import date, datetime
from decimal import Decimal
from io import BytesIO
from typing import Optional
from xml.sax.saxutils import escape

from reportlab.lib import colors
from reportlab.lib.pagesizes import A4
from reportlab.lib.styles import ParagraphStyle, getSampleStyleSheet
from reportlab.lib.units import mm
from reportlab.platypus import Paragraph, SimpleDocTemplate, Spacer, Table, TableStyle

CLINICAL_SECTIONS = [
    ("presenting_complaint", "Presenting Complaint"),
    ("past_history", "Past History"),
    ("physical_findings", "Physical Findings"),
    ("investigations", "Investigations"),
    ("final_diagnosis", "Final Diagnosis"),
    ("treatment_given", "Treatment Given"),
    ("prescription", "Medication on Discharge"),
    ("follow_up_advice", "Follow-up Advice"),
]


def _format_date(value, with_time: bool = False) -> str:
    if not value:
        return "-"
    if isinstance(value, str):
        try:
            value = datetime.fromisoformat(value.replace("Z", "+00:00"))
        except ValueError:
            return value[:10] if len(value) >= 10 else value
    if isinstance(value, datetime):
        return value.strftime("%d/%m/%Y %H:%M" if with_time else "%d/%m/%Y")
    if isinstance(value, date):
        return value.strftime("%d/%m/%Y")
    return str(value)


def _format_amount(value) -> str:
    if value is None:
        return "0.00"
    return f"{Decimal(str(value)):,.2f}"


def _condition_label(condition) -> str:
    condition = getattr(condition, "value", condition)
    return condition.replace("_", " ").title() if condition else "-"


def _text(value) -> str:
    # Paragraph takes mini-markup, so user text is escaped and newlines kept
    return escape(str(value)).replace("\n", "<br/>")


def generate_discharge_summary_pdf(
    summary_data: dict,
    hospital_name: str = "Hospital",
    hospital_address: Optional[str] = None,
    hospital_phone: Optional[str] = None,
) -> BytesIO:
    """
    Generate a discharge summary PDF (patient details, clinical sections
    and the final bill). Returns a BytesIO buffer containing the PDF.
    """
    buffer = BytesIO()

    doc = SimpleDocTemplate(
        buffer,
        pagesize=A4,
        rightMargin=20 * mm,
        leftMargin=20 * mm,
        topMargin=15 * mm,
        bottomMargin=10 * mm,
    )

    elements = []

    styles = getSampleStyleSheet()
    title_style = ParagraphStyle(
        "CustomTitle",
        parent=styles["Heading1"],
        fontSize=20,
        textColor=colors.black,
        spaceAfter=6,
        fontName="Helvetica-Bold",
    )

    heading_style = ParagraphStyle(
        "CustomHeading",
        parent=styles["Heading2"],
        fontSize=12,
        textColor=colors.black,
        spaceAfter=4,
        fontName="Helvetica-Bold",
    )

    normal_style = ParagraphStyle(
        "CustomNormal",
        parent=styles["Normal"],
        fontSize=10,
        textColor=colors.black,
        spaceAfter=6,
    )

    small_style = ParagraphStyle(
        "CustomSmall",
        parent=styles["Normal"],
        fontSize=8,
        textColor=colors.black,
        spaceAfter=4,
    )

    # Header
    elements.append(Paragraph(_text(hospital_name), title_style))
    header_parts = [part for part in (hospital_address, hospital_phone) if part]
    if header_parts:
        elements.append(Paragraph(_text(" • ".join(header_parts)), small_style))
    elements.append(Spacer(1, 3 * mm))

    title = "DISCHARGE SUMMARY"
    if summary_data.get("status") != "final":
        title += " (DRAFT)"
    elements.append(Paragraph(title, heading_style))
    elements.append(Spacer(1, 3 * mm))

    # Patient and stay
    age = summary_data.get("age")
    patient_data = [
        ["Patient Name:", summary_data.get("patient_name") or "N/A", "UHID:", summary_data.get("uhid") or "N/A"],
        [
            "Age / Gender:",
            f"{age if age is not None else '-'} / {summary_data.get('gender') or '-'}",
            "IP Number:",
            summary_data.get("ip_number") or "N/A",
        ],
        [
            "Admitted:",
            _format_date(summary_data.get("admission_date"), with_time=True),
            "Discharged:",
            _format_date(summary_data.get("discharge_date"), with_time=True),
        ],
        [
            "Consultant:",
            summary_data.get("consultant_name") or "-",
            "Condition:",
            _condition_label(summary_data.get("condition_at_discharge")),
        ],
    ]
    if summary_data.get("address"):
        patient_data.append(["Address:", summary_data["address"], "", ""])

    patient_table = Table(patient_data, colWidths=[28 * mm, 57 * mm, 28 * mm, 57 * mm])
    patient_table.setStyle(
        TableStyle(
            [
                ("FONTNAME", (0, 0), (-1, -1), "Helvetica"),
                ("FONTSIZE", (0, 0), (-1, -1), 9),
                ("FONTNAME", (0, 0), (0, -1), "Helvetica-Bold"),
                ("FONTNAME", (2, 0), (2, -1), "Helvetica-Bold"),
                ("ALIGN", (0, 0), (-1, -1), "LEFT"),
                ("VALIGN", (0, 0), (-1, -1), "TOP"),
                ("BOTTOMPADDING", (0, 0), (-1, -1), 3),
                ("TOPPADDING", (0, 0), (-1, -1), 3),
            ]
        )
    )
    elements.append(patient_table)
    elements.append(Spacer(1, 5 * mm))

    # Clinical sections
    for key, label in CLINICAL_SECTIONS:
        value = summary_data.get(key)
        if value:
            elements.append(Paragraph(f"{label}:", heading_style))
            elements.append(Paragraph(_text(value), normal_style))
            elements.append(Spacer(1, 2 * mm))

    extra_lines = []
    if summary_data.get("surgery_date"):
        extra_lines.append(f"Surgery Date: {_format_date(summary_data['surgery_date'])}")
    if summary_data.get("anesthesiologist"):
        extra_lines.append(f"Anesthesiologist: {_text(summary_data['anesthesiologist'])}")
    if summary_data.get("review_on"):
        extra_lines.append(f"Review On: {_format_date(summary_data['review_on'])}")
    for line in extra_lines:
        elements.append(Paragraph(line, normal_style))

    # Bill
    items = summary_data.get("items") or []
    if items:
        elements.append(Spacer(1, 3 * mm))
        bill_number = summary_data.get("bill_number")
        elements.append(Paragraph(f"Bill{f' ({bill_number})' if bill_number else ''}:", heading_style))
        elements.append(Spacer(1, 2 * mm))

        bill_data = [["Description", "Qty", "Rate", "Amount"]]
        for item in items:
            bill_data.append(
                [
                    item.get("description") or "-",
                    _format_amount(item.get("quantity")).rstrip("0").rstrip("."),
                    _format_amount(item.get("unit_rate")),
                    _format_amount(item.get("amount")),
                ]
            )

        totals = [
            ("Gross", summary_data.get("gross_amount")),
            ("Tax", summary_data.get("tax_amount")),
            ("Discount", summary_data.get("discount_amount")),
            ("Net Payable", summary_data.get("net_amount")),
            ("Paid", summary_data.get("paid_amount")),
            ("Pending", summary_data.get("pending_amount")),
        ]
        first_total_row = len(bill_data)
        for label, value in totals:
            bill_data.append(["", "", label, _format_amount(value)])

        bill_table = Table(bill_data, colWidths=[85 * mm, 20 * mm, 30 * mm, 35 * mm])
        bill_table.setStyle(
            TableStyle(
                [
                    ("BACKGROUND", (0, 0), (-1, 0), colors.grey),
                    ("TEXTCOLOR", (0, 0), (-1, 0), colors.whitesmoke),
                    ("FONTNAME", (0, 0), (-1, 0), "Helvetica-Bold"),
                    ("FONTSIZE", (0, 0), (-1, -1), 9),
                    ("ALIGN", (1, 0), (-1, -1), "RIGHT"),
                    ("GRID", (0, 0), (-1, first_total_row - 1), 1, colors.black),
                    ("FONTNAME", (2, first_total_row), (-1, -1), "Helvetica-Bold"),
                    ("VALIGN", (0, 0), (-1, -1), "TOP"),
                    ("TOPPADDING", (0, 1), (-1, -1), 3),
                    ("BOTTOMPADDING", (0, 1), (-1, -1), 3),
                ]
            )
        )
        elements.append(bill_table)

        splits = summary_data.get("payment_splits") or {}
        if splits:
            paid_by = ", ".join(f"{method.upper()}: {_format_amount(amount)}" for method, amount in splits.items())
            elements.append(Spacer(1, 2 * mm))
            elements.append(Paragraph(f"Paid by {paid_by}", small_style))

    # Footer
    elements.append(Spacer(1, 12 * mm))
    elements.append(Paragraph("Signature: _________________", normal_style))
    consultant = summary_data.get("consultant_name")
    if consultant:
        if not consultant.startswith("Dr."):
            consultant = f"Dr. {consultant}"
        elements.append(Paragraph(_text(consultant), normal_style))

    doc.build(elements)
    buffer.seek(0)
    return buffer
