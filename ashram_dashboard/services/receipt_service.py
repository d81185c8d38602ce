from io import BytesIO

from reportlab.lib import colors
from reportlab.lib.enums import TA_CENTER
from reportlab.lib.pagesizes import A4
from reportlab.lib.styles import ParagraphStyle, getSampleStyleSheet
from reportlab.lib.units import inch
from reportlab.platypus import Paragraph, SimpleDocTemplate, Spacer, Table, TableStyle
from werkzeug.utils import secure_filename

from ashram_dashboard.models.bhakt import plain_amount


def _rupees(value):
    # Base-14 PDF fonts carry no rupee glyph
    return f"Rs. {plain_amount(value) or 0}"


def receipt_date(bhakt):
    return bhakt.last_payment_date.strftime('%d %b %Y') if bhakt.last_payment_date else 'N/A'


def receipt_filename(bhakt):
    name = secure_filename(f"{bhakt.name}_{receipt_date(bhakt)}_receipt.pdf")
    return name or f"bhakt_{bhakt.id}_receipt.pdf"


def generate_receipt_pdf(bhakt, ashram_name, ashram_address=''):
    """Payment receipt for one bhakt as PDF bytes"""
    buffer = BytesIO()
    doc = SimpleDocTemplate(
        buffer,
        pagesize=A4,
        rightMargin=40,
        leftMargin=40,
        topMargin=40,
        bottomMargin=40,
        title=f"Payment Receipt - {bhakt.name}",
    )

    elements = []
    styles = getSampleStyleSheet()

    title_style = ParagraphStyle(
        'AshramTitle',
        parent=styles['Heading1'],
        fontSize=20,
        textColor=colors.HexColor('#be2424'),
        spaceAfter=6,
        alignment=TA_CENTER
    )
    address_style = ParagraphStyle(
        'AshramAddress',
        parent=styles['Normal'],
        fontSize=12,
        textColor=colors.HexColor('#3b3499'),
        spaceAfter=20,
        alignment=TA_CENTER
    )
    heading_style = ParagraphStyle(
        'ReceiptHeading',
        parent=styles['Heading2'],
        fontSize=15,
        textColor=colors.HexColor('#6d4f0c'),
        spaceAfter=12
    )

    elements.append(Paragraph(ashram_name, title_style))
    if ashram_address:
        elements.append(Paragraph(ashram_address, address_style))
    elements.append(Spacer(1, 10))
    elements.append(Paragraph("Payment Receipt", heading_style))

    rows = [
        ['Name:', bhakt.name or ''],
        ['Monthly Donation:', _rupees(bhakt.monthly_donation_amount)],
        ['Last Payment Date:', receipt_date(bhakt)],
        ['Extra Balance:', _rupees(bhakt.carry_forward_balance)],
        ['Current Status:', bhakt.payment_status or 'Unknown'],
    ]
    table = Table(rows, colWidths=[2 * inch, 3.5 * inch])
    table.setStyle(TableStyle([
        ('ALIGN', (0, 0), (0, -1), 'RIGHT'),
        ('ALIGN', (1, 0), (1, -1), 'LEFT'),
        ('FONTNAME', (0, 0), (0, -1), 'Helvetica-Bold'),
        ('FONTSIZE', (0, 0), (-1, -1), 12),
        ('BOTTOMPADDING', (0, 0), (-1, -1), 8),
        ('TEXTCOLOR', (1, 1), (1, 1), colors.HexColor('#1ab63a')),
        ('TEXTCOLOR', (1, 3), (1, 3), colors.HexColor('#1176c0')),
        ('TEXTCOLOR', (1, 4), (1, 4), colors.HexColor('#7a1fa2')),
        ('BOX', (0, 0), (-1, -1), 1.5, colors.HexColor('#b48d37')),
    ]))
    elements.append(table)

    doc.build(elements)
    return buffer.getvalue()
