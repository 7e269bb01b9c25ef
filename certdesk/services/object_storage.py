"""Certificate PDFs in hosted object storage.

Objects live in one bucket under ``{certificate_code}.pdf``; public URLs are
derived from the code alone, no mapping is stored anywhere.
"""

from __future__ import annotations

import logging
import os
import re
import time
from dataclasses import dataclass
from io import BytesIO
from typing import Callable

import requests
from reportlab.lib.pagesizes import A4, landscape
from reportlab.pdfgen import canvas

from ..shared.entities import Recipient, Template
from ..shared.storage import write_atomic
from ..shared.time import now_utc
from .certificates_render import render_certificate_pdf

logger = logging.getLogger("certdesk.storage")

BUCKET_NAME = "certificates"
MAX_RETRIES = 3
RETRY_DELAY_SECONDS = 1.0
PDF_CONTENT_TYPE = "application/pdf"


class StorageError(RuntimeError):
    """Raised when an object storage request fails for good."""


@dataclass(frozen=True)
class StorageResponse:
    status: int
    content: bytes = b""
    reason: str = ""

    @property
    def ok(self) -> bool:
        return 200 <= self.status < 300

    @property
    def text(self) -> str:
        return self.content.decode("utf-8", "replace")


class StorageTransport:
    """Minimal object storage API used by :class:`CertificateStorage`."""

    def create(self, key: str, data: bytes, content_type: str) -> StorageResponse:
        raise NotImplementedError

    def update(self, key: str, data: bytes, content_type: str) -> StorageResponse:
        raise NotImplementedError

    def get(self, key: str) -> StorageResponse:
        raise NotImplementedError

    def delete(self, key: str) -> StorageResponse:
        raise NotImplementedError

    def head(self, key: str) -> StorageResponse:
        raise NotImplementedError

    def public_url(self, key: str) -> str:
        raise NotImplementedError


class SupabaseStorageTransport(StorageTransport):
    """Talks to the Supabase storage REST API with the project anon key."""

    def __init__(
        self,
        base_url: str,
        api_key: str,
        bucket: str = BUCKET_NAME,
        timeout: float = 30,
        session: requests.Session | None = None,
    ):
        if not base_url or not api_key:
            raise StorageError("Missing object storage URL or API key")
        self.base_url = base_url.rstrip("/")
        self.bucket = bucket
        self.timeout = timeout
        self.session = session or requests.Session()
        self.session.headers.update(
            {"apikey": api_key, "Authorization": f"Bearer {api_key}"}
        )

    def _object_url(self, key: str) -> str:
        return f"{self.base_url}/storage/v1/object/{self.bucket}/{key}"

    def public_url(self, key: str) -> str:
        return f"{self.base_url}/storage/v1/object/public/{self.bucket}/{key}"

    @staticmethod
    def _wrap(resp: requests.Response) -> StorageResponse:
        return StorageResponse(resp.status_code, resp.content or b"", resp.reason or "")

    def create(self, key, data, content_type):
        resp = self.session.post(
            self._object_url(key),
            files={"file": (key, data, content_type)},
            timeout=self.timeout,
        )
        return self._wrap(resp)

    def update(self, key, data, content_type):
        resp = self.session.put(
            self._object_url(key),
            files={"file": (key, data, content_type)},
            timeout=self.timeout,
        )
        return self._wrap(resp)

    def get(self, key):
        return self._wrap(self.session.get(self.public_url(key), timeout=self.timeout))

    def delete(self, key):
        return self._wrap(self.session.delete(self._object_url(key), timeout=self.timeout))

    def head(self, key):
        return self._wrap(self.session.head(self.public_url(key), timeout=self.timeout))


def download_filename(certificate_code: str, recipient_name: str | None = None) -> str:
    if recipient_name:
        return f"{re.sub(r'[^a-z0-9]', '-', recipient_name, flags=re.I).lower()}-certificate.pdf"
    return f"{certificate_code}.pdf"


class CertificateStorage:
    def __init__(
        self,
        transport: StorageTransport,
        *,
        max_retries: int = MAX_RETRIES,
        retry_delay: float = RETRY_DELAY_SECONDS,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.transport = transport
        self.max_retries = max_retries
        self.retry_delay = retry_delay
        self.sleep = sleep

    @staticmethod
    def object_key(certificate_code: str) -> str:
        return f"{certificate_code}.pdf"

    def public_url(self, certificate_code: str) -> str:
        return self.transport.public_url(self.object_key(certificate_code))

    def _put(self, key: str, pdf_bytes: bytes) -> None:
        resp = self.transport.create(key, pdf_bytes, PDF_CONTENT_TYPE)
        if resp.ok:
            return
        if resp.status == 409:
            logger.info("[STORAGE-UPLOAD] %s already exists, updating", key)
            updated = self.transport.update(key, pdf_bytes, PDF_CONTENT_TYPE)
            if not updated.ok:
                raise StorageError(f"Failed to update file: {updated.text}")
            return
        raise StorageError(f"Upload failed: {resp.text}")

    def upload(self, certificate_code: str, pdf_bytes: bytes) -> str:
        """Store the PDF and return its public URL.

        A 409 on create is retried as an update of the same key. Any other
        failure repeats the whole sequence, waiting ``retry_delay * attempt``
        between attempts, and raises :class:`StorageError` after the last one.
        """
        key = self.object_key(certificate_code)
        for attempt in range(1, self.max_retries + 1):
            try:
                self._put(key, pdf_bytes)
            except Exception as exc:
                logger.warning(
                    "[STORAGE-UPLOAD] attempt %d/%d failed for %s: %s",
                    attempt,
                    self.max_retries,
                    key,
                    exc,
                )
                if attempt == self.max_retries:
                    raise StorageError(
                        f"Failed to upload certificate after {self.max_retries} attempts: {exc}"
                    ) from exc
                self.sleep(self.retry_delay * attempt)
                continue
            url = self.public_url(certificate_code)
            logger.info("[STORAGE-UPLOAD] stored %s url=%s", key, url)
            return url
        raise StorageError("Upload loop exited without a result")

    def download(
        self,
        certificate_code: str,
        dest_dir: str,
        recipient_name: str | None = None,
    ) -> str:
        """Save the stored PDF into ``dest_dir`` and return the written path."""
        resp = self.transport.get(self.object_key(certificate_code))
        if not resp.ok:
            raise StorageError(f"Failed to download certificate: {resp.reason or resp.status}")
        path = os.path.join(dest_dir, download_filename(certificate_code, recipient_name))
        write_atomic(path, resp.content)
        logger.info("[STORAGE-DOWNLOAD] %s saved to %s", certificate_code, path)
        return path

    def delete(self, certificate_code: str) -> None:
        resp = self.transport.delete(self.object_key(certificate_code))
        if not resp.ok and resp.status != 404:
            raise StorageError(f"Failed to delete certificate: {resp.text}")
        logger.info("[STORAGE-DELETE] %s removed", certificate_code)

    def exists(self, certificate_code: str) -> bool:
        try:
            return self.transport.head(self.object_key(certificate_code)).ok
        except Exception as exc:
            logger.warning("[STORAGE-EXISTS] %s check failed: %s", certificate_code, exc)
            return False

    def generate_and_upload(
        self,
        certificate_code: str,
        template: Template,
        recipient: Recipient,
        **render_kwargs,
    ) -> str:
        pdf_bytes = render_certificate_pdf(template, recipient, **render_kwargs)
        return self.upload(certificate_code, pdf_bytes)


def _sample_pdf() -> bytes:
    buffer = BytesIO()
    c = canvas.Canvas(buffer, pagesize=landscape(A4))
    c.drawString(57, 538, "Test PDF")
    c.drawString(57, 481, "This is a test certificate PDF")
    c.showPage()
    c.save()
    return buffer.getvalue()


def storage_self_check(transport: StorageTransport) -> list[dict]:
    """Upload a text file and a one-page PDF under timestamped keys."""
    stamp = int(now_utc().timestamp() * 1000)
    probes = [
        (f"test-{stamp}.txt", b"This is a test file", "text/plain"),
        (f"test-pdf-{stamp}.pdf", _sample_pdf(), PDF_CONTENT_TYPE),
    ]
    results = []
    for key, data, content_type in probes:
        try:
            resp = transport.create(key, data, content_type)
        except requests.RequestException as exc:
            logger.error("[STORAGE-CHECK] %s raised %s", key, exc)
            results.append({"key": key, "ok": False, "status": None, "detail": str(exc)})
            continue
        results.append(
            {
                "key": key,
                "ok": resp.ok,
                "status": resp.status,
                "detail": transport.public_url(key) if resp.ok else resp.text,
            }
        )
        logger.info("[STORAGE-CHECK] %s status=%s", key, resp.status)
    return results
