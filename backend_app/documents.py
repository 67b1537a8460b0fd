from io import BytesIO

from reportlab.lib.pagesizes import A4
from reportlab.pdfgen import canvas
import qrcode

from blockchain import CertificateRecord


# ---------------- QR ----------------
def render_qr_png(url: str) -> BytesIO:
    img = qrcode.make(url)
    buf = BytesIO()
    img.save(buf)
    buf.seek(0)
    return buf


# ---------------- PDF ----------------
def render_receipt_pdf(record: CertificateRecord, issuer: str, verification_url: str) -> BytesIO:
    buffer = BytesIO()
    pdf = canvas.Canvas(buffer, pagesize=A4)

    pdf.setFont("Helvetica-Bold", 22)
    pdf.drawCentredString(300, 800, "Certificate Registration Receipt")

    pdf.setFont("Helvetica", 14)
    pdf.drawString(80, 750, f"Certificate ID: {record.id}")
    pdf.drawString(80, 720, f"Participant: {record.participant_name}")
    pdf.drawString(80, 690, f"Event: {record.event_name}")
    pdf.drawString(80, 660, f"Issuer: {issuer}")
    pdf.drawString(80, 630, f"Issued At: {record.issued_at.isoformat()}")
    pdf.drawString(80, 600, f"Status: {'VALID' if record.is_valid else 'REVOKED'}")

    # sha256 hex does not fit on one line at 14pt
    pdf.setFont("Courier", 10)
    pdf.drawString(80, 560, "SHA-256:")
    pdf.drawString(80, 545, record.content_hash)
    pdf.drawString(80, 515, f"Verify: {verification_url}")

    pdf.showPage()
    pdf.save()

    buffer.seek(0)
    return buffer
