import base64
import logging
import os
import uuid
from dataclasses import dataclass
from datetime import date
from io import BytesIO

import qrcode
from PyPDF2 import PdfReader, PdfWriter
from reportlab.lib.pagesizes import A4
from reportlab.lib.utils import ImageReader
from reportlab.pdfgen import canvas

from errors import CertificateError
from models import CERTIFICATE_PREFIX
from utils import format_long_date

PDF_DATA_URL_PREFIX = 'data:application/pdf;base64,'

MARGIN_X = 72
QR_SIZE = 120
QR_BOX = 150


@dataclass(frozen=True)
class IssuedCertificate:
    certificate_id: str
    certificate_url: str
    pdf_bytes: bytes


def new_certificate_id() -> str:
    return f'{CERTIFICATE_PREFIX}{uuid.uuid4()}'


def build_verification_url(trainee_id, settings) -> str:
    return f'{settings.verification_base_url}/{trainee_id}'


def make_qr_png(data: str) -> bytes:
    qr = qrcode.QRCode(version=None, error_correction=qrcode.constants.ERROR_CORRECT_M, box_size=10, border=2)
    qr.add_data(data)
    qr.make(fit=True)
    buf = BytesIO()
    qr.make_image(fill_color='black', back_color='white').save(buf, format='PNG')
    return buf.getvalue()


def to_data_url(pdf_bytes: bytes) -> str:
    return PDF_DATA_URL_PREFIX + base64.b64encode(pdf_bytes).decode('ascii')


def from_data_url(data_url: str) -> bytes:
    if not data_url or not data_url.startswith(PDF_DATA_URL_PREFIX):
        raise ValueError('Not a PDF data URL')
    return base64.b64decode(data_url[len(PDF_DATA_URL_PREFIX):])


def _template_page(template_path):
    if not template_path:
        return None
    if not os.path.exists(template_path):
        logging.warning(f'[CERTIFICATE] Template {template_path} not found, rendering on a blank page')
        return None
    return PdfReader(template_path).pages[0]


def render_certificate_pdf(trainee, training, certificate_id, verification_url,
                           issue_date=None, template_path=None):
    """Render the one-page certificate and return the PDF bytes.

    The QR code is generated before anything is drawn, so a QR failure
    raises CertificateError instead of producing a certificate that cannot
    be verified.
    """
    issue_date = issue_date or date.today()
    try:
        qr_png = make_qr_png(verification_url)
    except Exception as e:
        logging.exception(f'[CERTIFICATE] QR code generation failed for trainee {trainee.id}')
        raise CertificateError('Failed to generate certificate QR code') from e

    template = _template_page(template_path)
    if template is not None:
        page_width = float(template.mediabox.width)
        page_height = float(template.mediabox.height)
    else:
        page_width, page_height = A4

    packet = BytesIO()
    can = canvas.Canvas(packet, pagesize=(page_width, page_height))
    can.setTitle(f'Certificate {certificate_id}')
    center = page_width / 2
    y = page_height - 110

    can.setFont('Helvetica-Bold', 32)
    can.drawCentredString(center, y, 'Certificate of Completion')
    y -= 70

    can.setFont('Helvetica', 16)
    can.drawCentredString(center, y, 'This certifies that')
    y -= 40

    can.setFont('Helvetica-Bold', 24)
    can.drawCentredString(center, y, trainee.full_name)
    y -= 40

    can.setFont('Helvetica', 16)
    can.drawCentredString(center, y, 'has successfully completed the training')
    y -= 36

    can.setFont('Helvetica-Bold', 20)
    can.drawCentredString(center, y, training.name)
    y -= 32

    can.setFont('Helvetica', 14)
    can.drawCentredString(center, y, f'on {format_long_date(trainee.training_date)}')

    # QR code bottom-right, caption underneath
    qr_x = page_width - QR_BOX - MARGIN_X
    qr_y = QR_BOX - MARGIN_X + 30
    can.drawImage(ImageReader(BytesIO(qr_png)), qr_x, qr_y, width=QR_SIZE, height=QR_SIZE)
    can.setFont('Helvetica', 8)
    can.drawCentredString(qr_x + QR_SIZE / 2, qr_y - 14, 'Scan QR code to verify')

    # Footer bottom-left
    can.setFont('Helvetica', 10)
    can.drawString(MARGIN_X, 100, f'Certificate ID: {certificate_id}')
    can.drawString(MARGIN_X, 80, f'Issue Date: {format_long_date(issue_date)}')

    can.showPage()
    can.save()
    packet.seek(0)

    if template is None:
        return packet.getvalue()

    # Merge overlay with template
    overlay_pdf = PdfReader(packet)
    template.merge_page(overlay_pdf.pages[0])
    output_pdf = PdfWriter()
    output_pdf.add_page(template)
    out = BytesIO()
    output_pdf.write(out)
    return out.getvalue()


def issue_certificate(trainee, training, settings, issue_date=None) -> IssuedCertificate:
    """Generate a fresh certificate id and PDF for a trainee who passed."""
    certificate_id = new_certificate_id()
    verification_url = build_verification_url(trainee.id, settings)
    pdf_bytes = render_certificate_pdf(
        trainee,
        training,
        certificate_id,
        verification_url,
        issue_date=issue_date,
        template_path=settings.certificate_template_path,
    )
    logging.info(f'[CERTIFICATE] Issued {certificate_id} for trainee {trainee.id} ({len(pdf_bytes)} bytes)')
    return IssuedCertificate(certificate_id, to_data_url(pdf_bytes), pdf_bytes)
