"""Remote side of certificate issuance.

For every locally issued certificate: insert the hosted row, then render the
PDF, upload it and record its URL on the row. Work runs on an executor and
each pipeline resolves a future, so callers that care can wait on the outcome
while the store itself never blocks on it.
"""

from __future__ import annotations

import logging
from concurrent.futures import Executor, Future, ThreadPoolExecutor, wait
from dataclasses import dataclass
from typing import Callable, Sequence

from flask import Flask

from ..shared.entities import Certificate, Recipient, Template
from . import certificate_records
from .object_storage import CertificateStorage, StorageError

logger = logging.getLogger("certdesk.issuance")
notify_logger = logging.getLogger("certdesk.notify")

BULK_BATCH_SIZE = 3
SINGLE_FAILURE_MESSAGE = (
    "Warning: Certificate was created but could not be saved to database. "
    "Please check the logs for details."
)

Notifier = Callable[[str], None]


def log_notifier(message: str) -> None:
    notify_logger.warning("[NOTIFY] %s", message)


@dataclass(frozen=True)
class IssuanceOutcome:
    certificate_id: str
    saved: bool
    pdf_url: str | None = None
    error: str | None = None
    skipped: bool = False


@dataclass(frozen=True)
class BulkIssuanceReport:
    saved: int
    failed: int
    batch_sizes: tuple[int, ...]

    @property
    def summary(self) -> str:
        return f"Processed {self.saved} certificates successfully. {self.failed} failed."


class InlineExecutor(Executor):
    """Runs submitted work immediately; the returned future is already done."""

    def submit(self, fn, /, *args, **kwargs):
        future: Future = Future()
        try:
            future.set_result(fn(*args, **kwargs))
        except Exception as exc:
            future.set_exception(exc)
        return future


def make_executor(kind: str, max_workers: int | None = None) -> Executor:
    if (kind or "thread").lower() == "inline":
        return InlineExecutor()
    return ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix="certdesk-issue")


def batched(items: Sequence, size: int) -> list[list]:
    return [list(items[i : i + size]) for i in range(0, len(items), size)]


class CertificateIssuer:
    def __init__(
        self,
        app: Flask,
        storage: CertificateStorage | None,
        *,
        executor: Executor | None = None,
        coordinator: Executor | None = None,
        notifier: Notifier | None = None,
        batch_size: int = BULK_BATCH_SIZE,
        render_options: dict | None = None,
    ):
        self.app = app
        self.storage = storage
        self.executor = executor or make_executor("thread", max_workers=batch_size + 1)
        self.coordinator = coordinator or (
            self.executor
            if isinstance(self.executor, InlineExecutor)
            else ThreadPoolExecutor(max_workers=1, thread_name_prefix="certdesk-bulk")
        )
        self.notifier = notifier or log_notifier
        self.batch_size = batch_size
        self.render_options = dict(render_options or {})

    def _attach_pdf(
        self, certificate: Certificate, recipient: Recipient, template: Template
    ) -> str | None:
        try:
            if self.storage is None:
                raise StorageError("Object storage is not configured")
            logger.info("[CERT-PDF] generating and uploading %s", certificate.id)
            pdf_url = self.storage.generate_and_upload(
                certificate.id, template, recipient, **self.render_options
            )
            certificate_records.update_certificate_pdf_url(certificate.id, pdf_url)
        except Exception:
            logger.exception("[CERT-PDF] failed for certificate %s", certificate.id)
            return None
        logger.info("[CERT-PDF] %s stored at %s", certificate.id, pdf_url)
        return pdf_url

    def process(
        self,
        certificate: Certificate,
        recipient: Recipient | None,
        template: Template | None,
    ) -> IssuanceOutcome:
        """Run the remote pipeline for one certificate; never raises."""
        if recipient is None or template is None:
            logger.error(
                "[CERT-ISSUE] missing recipient or template for %s (recipient=%s template=%s)",
                certificate.id,
                certificate.recipient_id,
                certificate.template_id,
            )
            return IssuanceOutcome(
                certificate.id,
                saved=False,
                error="missing recipient or template",
                skipped=True,
            )
        with self.app.app_context():
            payload = certificate_records.build_record_payload(
                certificate, recipient, template
            )
            try:
                certificate_records.insert_certificate(payload)
            except Exception as exc:
                logger.exception("[CERT-ISSUE] could not save %s", certificate.id)
                return IssuanceOutcome(certificate.id, saved=False, error=str(exc))
            pdf_url = self._attach_pdf(certificate, recipient, template)
        return IssuanceOutcome(certificate.id, saved=True, pdf_url=pdf_url)

    def submit(
        self,
        certificate: Certificate,
        recipient: Recipient | None,
        template: Template | None,
    ) -> Future:
        def run() -> IssuanceOutcome:
            outcome = self.process(certificate, recipient, template)
            if outcome.error and not outcome.skipped:
                self.notifier(SINGLE_FAILURE_MESSAGE)
            return outcome

        return self.executor.submit(run)

    def _run_bulk(
        self,
        items: list[tuple[Certificate, Recipient | None, Template | None]],
    ) -> BulkIssuanceReport:
        total = len(items)
        saved = failed = 0
        sizes: list[int] = []
        logger.info("[CERT-BULK] saving %d certificates", total)
        batches = batched(items, self.batch_size)
        for index, batch in enumerate(batches, start=1):
            sizes.append(len(batch))
            futures = [self.executor.submit(self.process, *item) for item in batch]
            wait(futures)
            for future in futures:
                outcome = future.result()
                if outcome.saved:
                    saved += 1
                elif not outcome.skipped:
                    failed += 1
            logger.info(
                "[CERT-BULK] batch %d/%d done size=%d saved=%d failed=%d",
                index,
                len(batches),
                len(batch),
                saved,
                failed,
            )
        report = BulkIssuanceReport(saved=saved, failed=failed, batch_sizes=tuple(sizes))
        if failed:
            self.notifier(report.summary)
        else:
            logger.info("[CERT-BULK] all %d certificates processed", saved)
        return report

    def submit_bulk(
        self,
        items: list[tuple[Certificate, Recipient | None, Template | None]],
    ) -> Future:
        return self.coordinator.submit(self._run_bulk, list(items))

    def shutdown(self, wait_for_jobs: bool = True) -> None:
        if self.coordinator is not self.executor:
            self.coordinator.shutdown(wait=wait_for_jobs)
        self.executor.shutdown(wait=wait_for_jobs)
