"""Application state for templates, recipients, certificates and collections.

All mutation goes through :class:`CertificateStore` commands. Each command
derives a new immutable :class:`StoreState` from the current one, swaps it in
under a lock and writes the whole snapshot to disk.
"""

from __future__ import annotations

import json
import logging
import threading
from concurrent.futures import Future
from dataclasses import replace
from typing import Any, Callable, Iterable, Mapping

from ..shared.defaults import DEFAULT_TEMPLATES
from ..shared.entities import (
    Certificate,
    CertificateCollection,
    Recipient,
    StoreState,
    Template,
    new_id,
)
from ..shared.storage import read_snapshot, write_snapshot
from ..shared.time import now_iso
from .issuance import BulkIssuanceReport, CertificateIssuer, IssuanceOutcome

logger = logging.getLogger("certdesk.store")

STORE_NAME = "certificate-store"
EXPORT_KEYS = ("templates", "recipients", "certificates", "collections")
MAX_TRACKED_JOBS = 1000


def default_state() -> StoreState:
    return StoreState(
        templates=DEFAULT_TEMPLATES,
        current_template_id=DEFAULT_TEMPLATES[0].id if DEFAULT_TEMPLATES else None,
    )


def _payload_dict(payload: Any) -> dict:
    if hasattr(payload, "to_dict"):
        return payload.to_dict()
    return dict(payload or {})


def verification_url(origin: str, certificate_id: str) -> str:
    return f"{(origin or '').rstrip('/')}/verify/{certificate_id}"


class CertificateStore:
    def __init__(
        self,
        store_dir: str | None = None,
        *,
        verification_origin: str = "",
        issuer: CertificateIssuer | None = None,
    ):
        self.store_dir = store_dir
        self.verification_origin = verification_origin
        self.issuer = issuer
        self.issuance_jobs: dict[str, Future] = {}
        self.bulk_jobs: dict[str, Future] = {}
        self._lock = threading.RLock()
        self._state = self._restore()

    # -- persistence -------------------------------------------------------

    def _restore(self) -> StoreState:
        if not self.store_dir:
            return default_state()
        try:
            saved = read_snapshot(self.store_dir, STORE_NAME)
        except (OSError, ValueError) as exc:
            logger.error("[STORE-LOAD] unreadable snapshot in %s: %s", self.store_dir, exc)
            return default_state()
        if saved is None:
            return default_state()
        try:
            return StoreState.from_dict(saved)
        except (KeyError, TypeError, ValueError) as exc:
            logger.error("[STORE-LOAD] invalid snapshot in %s: %s", self.store_dir, exc)
            return default_state()

    def _persist(self) -> None:
        if self.store_dir:
            write_snapshot(self.store_dir, STORE_NAME, self._state.to_dict())

    def _apply(self, change: Callable[[StoreState], StoreState]) -> StoreState:
        with self._lock:
            self._state = change(self._state)
            self._persist()
            return self._state

    # -- issuance jobs -----------------------------------------------------

    def _track(self, jobs: dict[str, Future], certificate_id: str, future: Future) -> None:
        with self._lock:
            jobs[certificate_id] = future
            excess = len(jobs) - MAX_TRACKED_JOBS
            if excess > 0:
                finished = [key for key, job in jobs.items() if job.done()]
                for key in finished[:excess]:
                    del jobs[key]

    def _prune_jobs(self) -> None:
        """Forget jobs whose certificates are no longer in the state."""
        with self._lock:
            live = {c.id for c in self._state.certificates}
            for jobs in (self.issuance_jobs, self.bulk_jobs):
                for key in [k for k in jobs if k not in live]:
                    del jobs[key]

    @property
    def state(self) -> StoreState:
        return self._state

    @property
    def templates(self) -> tuple[Template, ...]:
        return self._state.templates

    @property
    def recipients(self) -> tuple[Recipient, ...]:
        return self._state.recipients

    @property
    def certificates(self) -> tuple[Certificate, ...]:
        return self._state.certificates

    @property
    def collections(self) -> tuple[CertificateCollection, ...]:
        return self._state.collections

    @property
    def current_template_id(self) -> str | None:
        return self._state.current_template_id

    # -- templates ---------------------------------------------------------

    def add_template(self, payload: Mapping[str, Any] | Template) -> str:
        template_id = new_id()
        template = Template.from_dict({**_payload_dict(payload), "id": template_id})
        self._apply(lambda s: replace(s, templates=s.templates + (template,)))
        return template_id

    def update_template(self, template_id: str, payload: Mapping[str, Any] | Template) -> None:
        template = Template.from_dict({**_payload_dict(payload), "id": template_id})
        self._apply(
            lambda s: replace(
                s,
                templates=tuple(template if t.id == template_id else t for t in s.templates),
            )
        )

    def delete_template(self, template_id: str) -> None:
        def change(s: StoreState) -> StoreState:
            current = s.current_template_id
            if current == template_id:
                current = next((t.id for t in s.templates if t.id != template_id), None)
            return replace(
                s,
                templates=tuple(t for t in s.templates if t.id != template_id),
                current_template_id=current,
            )

        self._apply(change)

    def set_current_template(self, template_id: str | None) -> None:
        self._apply(lambda s: replace(s, current_template_id=template_id))

    # -- recipients --------------------------------------------------------

    def add_recipient(self, payload: Mapping[str, Any] | Recipient) -> str:
        return self.add_recipients([payload])[0]

    def add_recipients(self, payloads: Iterable[Mapping[str, Any] | Recipient]) -> list[str]:
        created = tuple(
            Recipient.from_dict({**_payload_dict(p), "id": new_id()}) for p in payloads
        )
        self._apply(lambda s: replace(s, recipients=s.recipients + created))
        return [r.id for r in created]

    def update_recipient(self, recipient_id: str, payload: Mapping[str, Any] | Recipient) -> None:
        recipient = Recipient.from_dict({**_payload_dict(payload), "id": recipient_id})
        self._apply(
            lambda s: replace(
                s,
                recipients=tuple(
                    recipient if r.id == recipient_id else r for r in s.recipients
                ),
            )
        )

    def delete_recipient(self, recipient_id: str) -> None:
        self._apply(
            lambda s: replace(
                s,
                recipients=tuple(r for r in s.recipients if r.id != recipient_id),
                certificates=tuple(
                    c for c in s.certificates if c.recipient_id != recipient_id
                ),
            )
        )
        self._prune_jobs()

    # -- certificates ------------------------------------------------------

    def _new_certificate(self, recipient_id: str, template_id: str) -> Certificate:
        certificate_id = new_id()
        url = verification_url(self.verification_origin, certificate_id)
        return Certificate(
            id=certificate_id,
            recipient_id=recipient_id,
            template_id=template_id,
            qr_code_url=url,
            issue_date=now_iso(),
            verification_url=url,
            status="published",
        )

    def generate_certificate(self, recipient_id: str, template_id: str) -> str:
        """Issue locally and hand the remote work to the issuer.

        The certificate exists in local state when this returns; the remote
        outcome is available later through :meth:`issuance_result`.
        """
        certificate = self._new_certificate(recipient_id, template_id)
        state = self._apply(lambda s: replace(s, certificates=s.certificates + (certificate,)))
        logger.info(
            "[CERT-ISSUE] issued %s recipient=%s template=%s",
            certificate.id,
            recipient_id,
            template_id,
        )
        if self.issuer is not None:
            future = self.issuer.submit(
                certificate,
                state.find_recipient(recipient_id),
                state.find_template(template_id),
            )
            self._track(self.issuance_jobs, certificate.id, future)
        return certificate.id

    def generate_bulk_certificates(self, recipient_ids: Iterable[str], template_id: str) -> list[str]:
        created = tuple(self._new_certificate(rid, template_id) for rid in recipient_ids)
        state = self._apply(lambda s: replace(s, certificates=s.certificates + created))
        logger.info("[CERT-BULK] issued %d certificates template=%s", len(created), template_id)
        ids = [c.id for c in created]
        if self.issuer is not None and created:
            template = state.find_template(template_id)
            future = self.issuer.submit_bulk(
                [(c, state.find_recipient(c.recipient_id), template) for c in created]
            )
            for certificate_id in ids:
                self._track(self.bulk_jobs, certificate_id, future)
        return ids

    def update_certificate(self, certificate_id: str, updates: Mapping[str, Any]) -> None:
        self._apply(
            lambda s: replace(
                s,
                certificates=tuple(
                    c.merged(updates) if c.id == certificate_id else c
                    for c in s.certificates
                ),
            )
        )

    def delete_certificate(self, certificate_id: str) -> None:
        self._apply(
            lambda s: replace(
                s,
                certificates=tuple(c for c in s.certificates if c.id != certificate_id),
            )
        )
        self._prune_jobs()

    def issuance_result(self, certificate_id: str, timeout: float | None = None) -> IssuanceOutcome | None:
        future = self.issuance_jobs.get(certificate_id)
        return future.result(timeout=timeout) if future is not None else None

    def bulk_result(self, certificate_id: str, timeout: float | None = None) -> BulkIssuanceReport | None:
        future = self.bulk_jobs.get(certificate_id)
        return future.result(timeout=timeout) if future is not None else None

    # -- collections -------------------------------------------------------

    def create_collection(
        self,
        name: str,
        description: str | None = None,
        template_id: str | None = None,
    ) -> str:
        collection = CertificateCollection(
            id=new_id(),
            name=name,
            description=description,
            template_id=template_id or "",
            certificates=(),
            created_at=now_iso(),
        )
        self._apply(lambda s: replace(s, collections=s.collections + (collection,)))
        return collection.id

    def update_collection(self, collection_id: str, updates: Mapping[str, Any]) -> None:
        self._apply(
            lambda s: replace(
                s,
                collections=tuple(
                    c.merged(updates) if c.id == collection_id else c
                    for c in s.collections
                ),
            )
        )

    def delete_collection(self, collection_id: str) -> None:
        self._apply(
            lambda s: replace(
                s, collections=tuple(c for c in s.collections if c.id != collection_id)
            )
        )

    def add_certificates_to_collection(
        self, collection_id: str, certificate_ids: Iterable[str]
    ) -> None:
        wanted = set(certificate_ids)

        def change(s: StoreState) -> StoreState:
            to_add = [c for c in s.certificates if c.id in wanted]
            collections = []
            for collection in s.collections:
                if collection.id == collection_id:
                    present = {c.id for c in collection.certificates}
                    extra = tuple(c for c in to_add if c.id not in present)
                    collection = replace(
                        collection, certificates=collection.certificates + extra
                    )
                collections.append(collection)
            return replace(s, collections=tuple(collections))

        self._apply(change)

    def remove_certificates_from_collection(
        self, collection_id: str, certificate_ids: Iterable[str]
    ) -> None:
        unwanted = set(certificate_ids)
        self._apply(
            lambda s: replace(
                s,
                collections=tuple(
                    replace(
                        c,
                        certificates=tuple(
                            cert for cert in c.certificates if cert.id not in unwanted
                        ),
                    )
                    if c.id == collection_id
                    else c
                    for c in s.collections
                ),
            )
        )

    # -- utilities ---------------------------------------------------------

    def load_default_data(self) -> None:
        self._apply(lambda s: default_state())
        self._prune_jobs()

    def clear_all_data(self) -> None:
        self._apply(lambda s: StoreState())
        self._prune_jobs()

    def export_data(self) -> str:
        data = self._state.to_dict()
        return json.dumps({key: data[key] for key in EXPORT_KEYS}, indent=2, ensure_ascii=False)

    def import_data(self, json_data: str) -> bool:
        """Replace all four containers from an export document.

        Missing keys become empty containers. Unparseable input is logged and
        leaves the current state untouched; returns whether the import applied.
        """
        try:
            data = json.loads(json_data)
            if not isinstance(data, dict):
                raise ValueError("export document must be a JSON object")
            templates = data.get("templates") or []
            imported = StoreState.from_dict(
                {
                    "templates": templates,
                    "recipients": data.get("recipients") or [],
                    "certificates": data.get("certificates") or [],
                    "collections": data.get("collections") or [],
                    "currentTemplateId": templates[0].get("id") if templates else None,
                }
            )
        except (ValueError, KeyError, TypeError, AttributeError) as exc:
            logger.error("[STORE-IMPORT] error importing data: %s", exc)
            return False
        self._apply(lambda s: imported)
        self._prune_jobs()
        logger.info(
            "[STORE-IMPORT] templates=%d recipients=%d certificates=%d collections=%d",
            len(imported.templates),
            len(imported.recipients),
            len(imported.certificates),
            len(imported.collections),
        )
        return True
