"""In-memory entities kept by the certificate store.

Entities serialise with the camelCase keys used by exported snapshots so that
files written by earlier versions of the tool import unchanged.
"""

from __future__ import annotations

import secrets
from dataclasses import dataclass, field
from typing import Any, Mapping

from .time import now_utc

_ID_ALPHABET = "useandom-26T198340PX75pxJACKVERYMINDBUSHWOLF_GQZbfghjklqvwyzrict"
ID_LENGTH = 21

FIELD_TYPES = ("text", "date", "qrcode")
CERTIFICATE_STATUSES = ("draft", "published")


def new_id(size: int = ID_LENGTH) -> str:
    """Return a URL-safe random identifier."""
    return "".join(secrets.choice(_ID_ALPHABET) for _ in range(size))


def _drop_none(data: dict) -> dict:
    return {key: value for key, value in data.items() if value is not None}


@dataclass(frozen=True)
class Field:
    id: str
    name: str
    type: str = "text"
    x: float = 50.0
    y: float = 50.0
    font_size: int | None = None
    font_family: str | None = None
    color: str | None = None
    default_value: str | None = None

    def to_dict(self) -> dict:
        return _drop_none(
            {
                "id": self.id,
                "name": self.name,
                "type": self.type,
                "x": self.x,
                "y": self.y,
                "fontSize": self.font_size,
                "fontFamily": self.font_family,
                "color": self.color,
                "defaultValue": self.default_value,
            }
        )

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "Field":
        return cls(
            id=str(data.get("id") or new_id()),
            name=str(data.get("name") or ""),
            type=str(data.get("type") or "text"),
            x=data.get("x", 50.0),
            y=data.get("y", 50.0),
            font_size=data.get("fontSize"),
            font_family=data.get("fontFamily"),
            color=data.get("color"),
            default_value=data.get("defaultValue"),
        )


@dataclass(frozen=True)
class Template:
    id: str
    name: str
    image_url: str
    fields: tuple[Field, ...] = ()

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "imageUrl": self.image_url,
            "fields": [f.to_dict() for f in self.fields],
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "Template":
        return cls(
            id=str(data.get("id") or ""),
            name=str(data.get("name") or ""),
            image_url=str(data.get("imageUrl") or ""),
            fields=tuple(Field.from_dict(f) for f in data.get("fields") or []),
        )


@dataclass(frozen=True)
class Recipient:
    id: str
    name: str
    email: str | None = None
    course: str | None = None
    custom_fields: dict[str, str] = field(default_factory=dict)
    issue_date: str = ""

    def to_dict(self) -> dict:
        return _drop_none(
            {
                "id": self.id,
                "name": self.name,
                "email": self.email,
                "course": self.course,
                "customFields": dict(self.custom_fields),
                "issueDate": self.issue_date,
            }
        )

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "Recipient":
        return cls(
            id=str(data.get("id") or ""),
            name=str(data.get("name") or ""),
            email=data.get("email"),
            course=data.get("course"),
            custom_fields=dict(data.get("customFields") or {}),
            issue_date=str(data.get("issueDate") or now_utc().isoformat()),
        )


@dataclass(frozen=True)
class Certificate:
    id: str
    recipient_id: str
    template_id: str
    qr_code_url: str
    issue_date: str
    verification_url: str
    status: str = "published"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "recipientId": self.recipient_id,
            "templateId": self.template_id,
            "qrCodeUrl": self.qr_code_url,
            "issueDate": self.issue_date,
            "verificationUrl": self.verification_url,
            "status": self.status,
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "Certificate":
        return cls(
            id=str(data.get("id") or ""),
            recipient_id=str(data.get("recipientId") or ""),
            template_id=str(data.get("templateId") or ""),
            qr_code_url=str(data.get("qrCodeUrl") or ""),
            issue_date=str(data.get("issueDate") or ""),
            verification_url=str(data.get("verificationUrl") or ""),
            status=str(data.get("status") or "published"),
        )

    def merged(self, updates: Mapping[str, Any]) -> "Certificate":
        """Return a copy with the camelCase ``updates`` applied; ``id`` is kept."""
        data = self.to_dict()
        data.update(updates)
        data["id"] = self.id
        return Certificate.from_dict(data)


@dataclass(frozen=True)
class CertificateCollection:
    id: str
    name: str
    description: str | None = None
    template_id: str = ""
    certificates: tuple[Certificate, ...] = ()
    created_at: str = ""

    def to_dict(self) -> dict:
        return _drop_none(
            {
                "id": self.id,
                "name": self.name,
                "description": self.description,
                "templateId": self.template_id,
                "certificates": [c.to_dict() for c in self.certificates],
                "createdAt": self.created_at,
            }
        )

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "CertificateCollection":
        return cls(
            id=str(data.get("id") or ""),
            name=str(data.get("name") or ""),
            description=data.get("description"),
            template_id=str(data.get("templateId") or ""),
            certificates=tuple(
                Certificate.from_dict(c) for c in data.get("certificates") or []
            ),
            created_at=str(data.get("createdAt") or ""),
        )

    def merged(self, updates: Mapping[str, Any]) -> "CertificateCollection":
        data = self.to_dict()
        data.update(updates)
        data["id"] = self.id
        return CertificateCollection.from_dict(data)


@dataclass(frozen=True)
class StoreState:
    templates: tuple[Template, ...] = ()
    recipients: tuple[Recipient, ...] = ()
    certificates: tuple[Certificate, ...] = ()
    collections: tuple[CertificateCollection, ...] = ()
    current_template_id: str | None = None

    def to_dict(self) -> dict:
        return {
            "templates": [t.to_dict() for t in self.templates],
            "recipients": [r.to_dict() for r in self.recipients],
            "certificates": [c.to_dict() for c in self.certificates],
            "collections": [c.to_dict() for c in self.collections],
            "currentTemplateId": self.current_template_id,
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "StoreState":
        return cls(
            templates=tuple(Template.from_dict(t) for t in data.get("templates") or []),
            recipients=tuple(
                Recipient.from_dict(r) for r in data.get("recipients") or []
            ),
            certificates=tuple(
                Certificate.from_dict(c) for c in data.get("certificates") or []
            ),
            collections=tuple(
                CertificateCollection.from_dict(c)
                for c in data.get("collections") or []
            ),
            current_template_id=data.get("currentTemplateId"),
        )

    def find_template(self, template_id: str) -> Template | None:
        return next((t for t in self.templates if t.id == template_id), None)

    def find_recipient(self, recipient_id: str) -> Recipient | None:
        return next((r for r in self.recipients if r.id == recipient_id), None)

    def find_certificate(self, certificate_id: str) -> Certificate | None:
        return next((c for c in self.certificates if c.id == certificate_id), None)

    def find_collection(self, collection_id: str) -> CertificateCollection | None:
        return next((c for c in self.collections if c.id == collection_id), None)

