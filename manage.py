from certdesk.app import create_app, db, get_store

from flask_migrate import Migrate
from flask.cli import FlaskGroup
import click
from flask import current_app
from certdesk.services.object_storage import StorageError, storage_self_check
from certdesk.shared.storage import write_atomic


migrate = Migrate()


def create_certdesk_app():
    app = create_app()
    migrate.init_app(app, db)
    return app


cli = FlaskGroup(create_app=create_certdesk_app)


def _storage_or_exit():
    store = get_store()
    storage = store.issuer.storage if store.issuer else None
    if storage is None:
        click.echo("Object storage is not configured", err=True)
        raise SystemExit(1)
    return storage


@cli.command("gen_cert")
@click.option("--recipient", "recipient_id", required=True)
@click.option("--template", "template_id", required=True)
@click.option("--wait/--no-wait", default=True, help="Wait for the remote save and upload")
def gen_cert(recipient_id: str, template_id: str, wait: bool):
    """Issue a certificate for a stored recipient."""
    store = get_store()
    if store.state.find_recipient(recipient_id) is None:
        click.echo("Recipient not found", err=True)
        return
    certificate_id = store.generate_certificate(recipient_id, template_id)
    click.echo(certificate_id)
    if wait:
        outcome = store.issuance_result(certificate_id)
        if outcome is not None:
            click.echo(
                f"saved={outcome.saved} pdf_url={outcome.pdf_url or ''} error={outcome.error or ''}"
            )


@cli.command("export_data")
@click.option("--output", "output_path", required=True, type=click.Path(dir_okay=False))
def export_data(output_path: str):
    write_atomic(output_path, get_store().export_data(), mode="w")
    click.echo(output_path)


@cli.command("import_data")
@click.argument("input_path", type=click.Path(exists=True, dir_okay=False))
def import_data(input_path: str):
    with open(input_path, "r", encoding="utf-8") as handle:
        ok = get_store().import_data(handle.read())
    if not ok:
        click.echo("Import failed; state unchanged", err=True)
        return
    store = get_store()
    click.echo(
        f"templates={len(store.templates)} recipients={len(store.recipients)} "
        f"certificates={len(store.certificates)} collections={len(store.collections)}"
    )


@cli.command("load_defaults")
def load_defaults():
    get_store().load_default_data()
    click.echo("Default data loaded")


@cli.command("clear_data")
@click.confirmation_option(prompt="Remove all templates, recipients, certificates and collections?")
def clear_data():
    get_store().clear_all_data()
    click.echo("All data cleared")


@cli.command("download_cert")
@click.option("--code", "certificate_code", required=True)
@click.option("--dest", "dest_dir", default=".", type=click.Path(file_okay=False))
@click.option("--name", "recipient_name", default=None)
def download_cert(certificate_code: str, dest_dir: str, recipient_name: str | None):
    storage = _storage_or_exit()
    try:
        path = storage.download(certificate_code, dest_dir, recipient_name)
    except StorageError as exc:
        click.echo(str(exc), err=True)
        raise SystemExit(1)
    click.echo(path)


@cli.command("delete_cert")
@click.option("--code", "certificate_code", required=True)
def delete_cert(certificate_code: str):
    storage = _storage_or_exit()
    try:
        storage.delete(certificate_code)
    except StorageError as exc:
        click.echo(str(exc), err=True)
        raise SystemExit(1)
    click.echo(f"deleted {storage.object_key(certificate_code)}")


@cli.command("storage_check")
def storage_check():
    """Upload a probe text file and PDF to verify bucket access."""
    storage = _storage_or_exit()
    failures = 0
    for result in storage_self_check(storage.transport):
        state = "PASSED" if result["ok"] else "FAILED"
        click.echo(f"{state} {result['key']} status={result['status']} {result['detail']}")
        failures += 0 if result["ok"] else 1
    current_app.logger.info("[STORAGE-CHECK] failures=%d", failures)
    if failures:
        raise SystemExit(1)


if __name__ == "__main__":
    cli()
