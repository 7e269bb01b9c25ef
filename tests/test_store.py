import json
import os

from certdesk.services.store import STORE_NAME, CertificateStore
from certdesk.shared.defaults import DEFAULT_TEMPLATES
from certdesk.shared.storage import snapshot_path


def _template_payload(name="Course", image_url="data:,"):
    return {
        "name": name,
        "imageUrl": image_url,
        "fields": [
            {"id": "f1", "name": "recipient", "type": "text", "x": 50, "y": 45, "fontSize": 32}
        ],
    }


def test_new_store_starts_with_builtin_templates(tmp_path):
    store = CertificateStore(str(tmp_path))
    assert [t.id for t in store.templates] == [t.id for t in DEFAULT_TEMPLATES]
    assert store.current_template_id == "proteccion-datos-personales"
    assert store.recipients == ()
    assert store.certificates == ()
    assert store.collections == ()


def test_add_and_update_template_keeps_id(tmp_path):
    store = CertificateStore(str(tmp_path))
    template_id = store.add_template(_template_payload())
    assert len(template_id) == 21
    store.update_template(template_id, {**_template_payload("Renamed"), "id": "other"})
    template = store.state.find_template(template_id)
    assert template.name == "Renamed"
    assert store.state.find_template("other") is None


def test_delete_current_template_moves_to_first_remaining(tmp_path):
    store = CertificateStore(str(tmp_path))
    store.delete_template("proteccion-datos-personales")
    assert store.current_template_id == "power-bi-avanzado"
    store.set_current_template("excel-avanzado")
    store.delete_template("power-bi-avanzado")
    assert store.current_template_id == "excel-avanzado"


def test_delete_last_template_clears_current(tmp_path):
    store = CertificateStore(str(tmp_path))
    for template in DEFAULT_TEMPLATES:
        store.delete_template(template.id)
    assert store.templates == ()
    assert store.current_template_id is None


def test_recipient_batch_keeps_order_and_defaults_issue_date(tmp_path):
    store = CertificateStore(str(tmp_path))
    ids = store.add_recipients([{"name": "Ana"}, {"name": "Luis", "course": "SQL"}])
    assert [r.name for r in store.recipients] == ["Ana", "Luis"]
    assert [r.id for r in store.recipients] == ids
    assert all(r.issue_date for r in store.recipients)


def test_delete_recipient_cascades_only_their_certificates(tmp_path):
    store = CertificateStore(str(tmp_path))
    ana, luis = store.add_recipients([{"name": "Ana"}, {"name": "Luis"}])
    store.generate_certificate(ana, "excel-avanzado")
    kept = store.generate_certificate(luis, "excel-avanzado")
    store.delete_recipient(ana)
    assert [r.id for r in store.recipients] == [luis]
    assert [c.id for c in store.certificates] == [kept]


def test_update_certificate_merges_fields(tmp_path):
    store = CertificateStore(str(tmp_path), verification_origin="https://x.test")
    recipient_id = store.add_recipient({"name": "Ana"})
    certificate_id = store.generate_certificate(recipient_id, "excel-avanzado")
    store.update_certificate(certificate_id, {"status": "draft", "id": "ignored"})
    certificate = store.state.find_certificate(certificate_id)
    assert certificate.status == "draft"
    assert certificate.verification_url == f"https://x.test/verify/{certificate_id}"


def test_generate_without_issuer_is_local_only(tmp_path):
    store = CertificateStore(str(tmp_path), verification_origin="https://x.test/")
    certificate_id = store.generate_certificate("r1", "t1")
    certificate = store.state.find_certificate(certificate_id)
    assert certificate.qr_code_url == f"https://x.test/verify/{certificate_id}"
    assert certificate.status == "published"
    assert store.issuance_result(certificate_id) is None


def test_collection_membership(tmp_path):
    store = CertificateStore(str(tmp_path))
    recipient_id = store.add_recipient({"name": "Ana"})
    first = store.generate_certificate(recipient_id, "excel-avanzado")
    second = store.generate_certificate(recipient_id, "excel-avanzado")
    collection_id = store.create_collection("Marzo", "Cohorte", "excel-avanzado")

    store.add_certificates_to_collection(collection_id, [second, first, "missing"])
    store.add_certificates_to_collection(collection_id, [first])
    collection = store.state.find_collection(collection_id)
    assert [c.id for c in collection.certificates] == [first, second]

    store.remove_certificates_from_collection(collection_id, [first])
    collection = store.state.find_collection(collection_id)
    assert [c.id for c in collection.certificates] == [second]


def test_update_and_delete_collection(tmp_path):
    store = CertificateStore(str(tmp_path))
    collection_id = store.create_collection("Marzo")
    created = store.state.find_collection(collection_id)
    assert created.template_id == ""
    assert created.created_at.endswith("Z")
    store.update_collection(collection_id, {"name": "Abril", "id": "x"})
    assert store.state.find_collection(collection_id).name == "Abril"
    store.delete_collection(collection_id)
    assert store.collections == ()


def test_state_survives_restart(tmp_path):
    store = CertificateStore(str(tmp_path))
    recipient_id = store.add_recipient({"name": "Ana", "customFields": {"studentId": "A-1"}})
    store.set_current_template("datos-abiertos")

    with open(snapshot_path(str(tmp_path), STORE_NAME), encoding="utf-8") as fh:
        saved = json.load(fh)
    assert saved["version"] == 0
    assert saved["state"]["currentTemplateId"] == "datos-abiertos"

    reopened = CertificateStore(str(tmp_path))
    assert reopened.current_template_id == "datos-abiertos"
    assert reopened.state.find_recipient(recipient_id).custom_fields == {"studentId": "A-1"}


def test_corrupt_snapshot_falls_back_to_defaults(tmp_path, caplog):
    path = snapshot_path(str(tmp_path), STORE_NAME)
    os.makedirs(os.path.dirname(path), exist_ok=True)
    with open(path, "w", encoding="utf-8") as fh:
        fh.write("{not json")
    with caplog.at_level("ERROR", logger="certdesk.store"):
        store = CertificateStore(str(tmp_path))
    assert len(store.templates) == len(DEFAULT_TEMPLATES)
    assert "[STORE-LOAD]" in caplog.text


def test_clear_and_reload_defaults(tmp_path):
    store = CertificateStore(str(tmp_path))
    store.add_recipient({"name": "Ana"})
    store.clear_all_data()
    assert store.templates == ()
    assert store.current_template_id is None
    store.load_default_data()
    assert store.recipients == ()
    assert store.current_template_id == DEFAULT_TEMPLATES[0].id


def test_update_recipient_replaces_everything_but_id(tmp_path):
    store = CertificateStore(str(tmp_path))
    recipient_id = store.add_recipient(
        {"name": "Ana", "email": "ana@example.com", "customFields": {"grade": "A"}}
    )
    store.update_recipient(
        recipient_id, {"name": "Ana María", "issueDate": "2024-03-15T00:00:00.000Z"}
    )
    recipient = store.state.find_recipient(recipient_id)
    assert recipient.name == "Ana María"
    assert recipient.email is None
    assert recipient.custom_fields == {}
    assert recipient.issue_date == "2024-03-15T00:00:00.000Z"
