from __future__ import annotations

from flask import current_app

from ..app import db
from ..models import CertificateRecord
from ..shared.entities import Certificate, Recipient, Template
from ..shared.time import now_utc


def build_record_payload(
    certificate: Certificate, recipient: Recipient, template: Template
) -> dict:
    """Column values for the hosted row of a freshly issued certificate."""
    return {
        "certificate_code": certificate.id,
        "recipient_name": recipient.name,
        "recipient_email": recipient.email or "",
        "recipient_id": (recipient.custom_fields or {}).get("studentId") or None,
        "course_name": recipient.course or template.name,
        "template_id": template.id,
        "issue_date": now_utc().date(),
        "qr_code_data": certificate.verification_url,
        "status": "active",
    }


def insert_certificate(payload: dict) -> CertificateRecord:
    record = CertificateRecord(**payload)
    db.session.add(record)
    try:
        db.session.commit()
    except Exception:
        db.session.rollback()
        raise
    current_app.logger.info(
        "[CERT-ISSUE] row saved code=%s recipient=%s",
        record.certificate_code,
        record.recipient_name,
    )
    return record


def update_certificate_pdf_url(certificate_code: str, pdf_url: str) -> bool:
    record = (
        db.session.query(CertificateRecord)
        .filter_by(certificate_code=certificate_code)
        .one_or_none()
    )
    if record is None:
        current_app.logger.warning(
            "[CERT-PDF] no row for code=%s; pdf url not recorded", certificate_code
        )
        return False
    record.certificate_pdf_url = pdf_url
    try:
        db.session.commit()
    except Exception:
        db.session.rollback()
        raise
    return True


def get_certificate_record(certificate_code: str) -> CertificateRecord | None:
    return (
        db.session.query(CertificateRecord)
        .filter_by(certificate_code=certificate_code)
        .one_or_none()
    )
