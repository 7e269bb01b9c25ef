from __future__ import annotations

from .app import db


class CertificateRecord(db.Model):
    """Hosted row for an issued certificate, looked up by verification pages."""

    __tablename__ = "certificates"

    id = db.Column(db.Integer, primary_key=True)
    certificate_code = db.Column(db.String(64), unique=True, nullable=False)
    recipient_name = db.Column(db.String(255), nullable=False)
    recipient_email = db.Column(db.String(255), nullable=False, default="")
    recipient_id = db.Column(db.String(255))
    course_name = db.Column(db.String(255))
    template_id = db.Column(db.String(64))
    issue_date = db.Column(db.Date, nullable=False)
    qr_code_data = db.Column(db.Text)
    status = db.Column(db.String(20), nullable=False, default="active")
    certificate_pdf_url = db.Column(db.Text)
    created_at = db.Column(db.DateTime, server_default=db.func.now())
    __table_args__ = (
        db.Index("idx_certificates_pdf_url", "certificate_pdf_url"),
    )

    def to_dict(self) -> dict:
        return {
            "certificate_code": self.certificate_code,
            "recipient_name": self.recipient_name,
            "recipient_email": self.recipient_email,
            "recipient_id": self.recipient_id,
            "course_name": self.course_name,
            "template_id": self.template_id,
            "issue_date": self.issue_date.isoformat() if self.issue_date else None,
            "qr_code_data": self.qr_code_data,
            "status": self.status,
            "certificate_pdf_url": self.certificate_pdf_url,
        }
