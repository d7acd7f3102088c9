"""
Completion certificate PDF using ReportLab.
"""
import io
import logging
from datetime import datetime
from typing import List

from reportlab.graphics import renderPDF
from reportlab.graphics.barcode.qr import QrCodeWidget
from reportlab.graphics.shapes import Drawing
from reportlab.lib import colors
from reportlab.lib.pagesizes import A4
from reportlab.lib.units import mm
from reportlab.pdfgen import canvas

from signing.documents.schemas import CertificateSigner

logger = logging.getLogger(__name__)

QR_SIZE = 40 * mm
DATE_FORMAT = "%Y-%m-%d %H:%M:%S UTC"


class CertificateRenderer:

    def render(self, certificate_id: str, file_name: str, document_hash: str,
               generated_at: datetime, expires_at: datetime,
               signers: List[CertificateSigner], qr_content: str) -> bytes:
        buf = io.BytesIO()
        c = canvas.Canvas(buf, pagesize=A4)
        c.setTitle(f"Signing certificate {certificate_id}")
        width, height = A4
        left = 20 * mm
        y = height - 25 * mm

        c.setFillColor(colors.HexColor("#2c3e50"))
        c.setFont("Helvetica-Bold", 20)
        c.drawString(left, y, "Certificate of Completion")
        y -= 12 * mm

        c.setFont("Helvetica", 10)
        for label, value in (
            ("Certificate ID", certificate_id),
            ("Document", file_name),
            ("Generated", generated_at.strftime(DATE_FORMAT)),
            ("Valid until", expires_at.strftime(DATE_FORMAT)),
            ("Total signers", str(len(signers))),
        ):
            c.setFont("Helvetica-Bold", 10)
            c.drawString(left, y, f"{label}:")
            c.setFont("Helvetica", 10)
            c.drawString(left + 35 * mm, y, value)
            y -= 6 * mm

        c.setFont("Helvetica-Bold", 10)
        c.drawString(left, y, "SHA-256:")
        c.setFont("Courier", 8)
        c.drawString(left + 35 * mm, y, document_hash)
        y -= 12 * mm

        c.setFont("Helvetica-Bold", 14)
        c.drawString(left, y, "Signers")
        y -= 8 * mm

        for signer in signers:
            if y < 40 * mm:
                c.showPage()
                y = height - 25 * mm
            c.setFont("Helvetica-Bold", 10)
            c.drawString(left, y, f"{signer.signature_order}. {signer.signer_name} <{signer.signer_email}>")
            y -= 5 * mm
            c.setFont("Helvetica", 9)
            details = f"Signed {signer.signed_at.strftime(DATE_FORMAT)}"
            if signer.ip_address:
                details += f"  IP {signer.ip_address}"
            if signer.device_info:
                details += f"  Device {signer.device_info}"
            c.drawString(left + 5 * mm, y, details)
            y -= 8 * mm

        self._draw_qr(c, qr_content, width - left - QR_SIZE, 20 * mm)
        c.setFont("Helvetica", 7)
        c.drawString(left, 20 * mm, "Scan the code to verify this certificate.")

        c.save()
        logger.debug("Rendered certificate %s (%d signers)", certificate_id, len(signers))
        return buf.getvalue()

    @staticmethod
    def _draw_qr(c: canvas.Canvas, content: str, x: float, y: float) -> None:
        widget = QrCodeWidget(content)
        x1, y1, x2, y2 = widget.getBounds()
        drawing = Drawing(QR_SIZE, QR_SIZE, transform=[QR_SIZE / (x2 - x1), 0, 0, QR_SIZE / (y2 - y1), 0, 0])
        drawing.add(widget)
        renderPDF.draw(drawing, c, x, y)
