import base64
from io import BytesIO

import pytest
from PIL import Image
from PyPDF2 import PdfReader
from reportlab.lib.pagesizes import A4, landscape
from reportlab.pdfgen import canvas

from certdesk.services.certificates_render import (
    CANVAS_HEIGHT,
    CANVAS_WIDTH,
    TemplateImageError,
    bitmap_to_pdf,
    compose_certificate,
    field_text,
    load_template_image,
    render_certificate_pdf,
)
from certdesk.shared.entities import Field, Recipient, Template
from certdesk.shared.time import fmt_long_date_es


def _recipient(**overrides):
    data = {
        "id": "r1",
        "name": "Ana Pérez",
        "course": None,
        "custom_fields": {},
        "issue_date": "2024-03-15T10:00:00.000Z",
    }
    data.update(overrides)
    return Recipient(**data)


def _template(*fields):
    return Template(id="t1", name="Curso", image_url="bg.png", fields=tuple(fields))


def _png_data_uri(size=(60, 40)):
    buf = BytesIO()
    Image.new("RGB", size, (10, 120, 200)).save(buf, format="PNG")
    return "data:image/png;base64," + base64.b64encode(buf.getvalue()).decode("ascii")


def test_field_text_rules():
    recipient = _recipient(course="SQL", custom_fields={"grade": "A", "empty": ""})
    assert field_text(Field("1", "recipient"), recipient) == "Ana Pérez"
    assert field_text(Field("2", "course", default_value="Base"), recipient) == "SQL"
    assert field_text(Field("3", "course", default_value="Base"), _recipient()) == "Base"
    assert field_text(Field("4", "course"), _recipient()) == ""
    assert field_text(Field("5", "grade", default_value="B"), recipient) == "A"
    assert field_text(Field("6", "empty", default_value="n/a"), recipient) == "n/a"
    assert field_text(Field("7", "date", type="date"), recipient) == "15 de marzo de 2024"
    assert field_text(Field("8", "qr", type="qrcode"), recipient) == ""


@pytest.mark.parametrize(
    "value, expected",
    [
        ("2024-01-05", "5 de enero de 2024"),
        ("2023-12-31T23:59:59Z", "31 de diciembre de 2023"),
        ("not a date", ""),
        (None, ""),
    ],
)
def test_fmt_long_date_es(value, expected):
    assert fmt_long_date_es(value) == expected


def test_load_template_image_from_data_uri():
    image = load_template_image(_png_data_uri())
    assert image.size == (60, 40)
    assert image.mode == "RGB"


def test_load_template_image_from_assets(tmp_path):
    folder = tmp_path / "certificate-templates"
    folder.mkdir()
    Image.new("RGB", (30, 20), "red").save(folder / "x.jpg", format="JPEG")
    image = load_template_image("/certificate-templates/x.jpg", assets_root=str(tmp_path))
    assert image.size == (30, 20)


@pytest.mark.parametrize("url", ["", "/certificate-templates/missing.jpg", "data:,notanimage"])
def test_load_template_image_failures(url, tmp_path):
    with pytest.raises(TemplateImageError):
        load_template_image(url, assets_root=str(tmp_path))


def test_compose_covers_canvas_at_scale():
    template = _template(Field("1", "recipient", x=50, y=50, font_size=28, color="#1a365d"))
    bitmap = compose_certificate(
        template, _recipient(), Image.new("RGB", (100, 100), "white"), scale=2
    )
    assert bitmap.size == (CANVAS_WIDTH * 2, CANVAS_HEIGHT * 2)
    assert bitmap.getpixel((5, 5)) == (255, 255, 255)
    assert bitmap.convert("L").getextrema()[0] < 200


def test_render_pdf_is_single_landscape_a4_page():
    template = _template(
        Field("1", "recipient", x=30, y=40, font_size=28, font_family="Sora, sans-serif"),
        Field("2", "fecha", type="date", x=50, y=80),
        Field("3", "qr", type="qrcode", x=90, y=90),
    )
    pdf_bytes = render_certificate_pdf(
        template,
        _recipient(),
        image_loader=lambda url, timeout: Image.new("RGB", (400, 300), "beige"),
        settle_seconds=0,
        scale=1,
    )
    reader = PdfReader(BytesIO(pdf_bytes))
    assert len(reader.pages) == 1
    box = reader.pages[0].mediabox
    assert round(float(box.width)) == 842
    assert round(float(box.height)) == 595


def test_render_pdf_propagates_image_errors():
    def failing_loader(url, timeout):
        raise TemplateImageError("Template image load timeout")

    with pytest.raises(TemplateImageError, match="timeout"):
        render_certificate_pdf(_template(), _recipient(), image_loader=failing_loader, settle_seconds=0)


def test_pdf_covers_page_for_square_bitmap(monkeypatch):
    drawn = {}

    def record_draw(self, image, x, y, width=None, height=None, **kwargs):
        drawn.update(x=x, y=y, width=width, height=height)

    monkeypatch.setattr(canvas.Canvas, "drawImage", record_draw)
    bitmap_to_pdf(Image.new("RGB", (1000, 1000), "white"))

    page_w, page_h = landscape(A4)
    assert drawn["width"] == pytest.approx(page_w)
    assert drawn["height"] == pytest.approx(page_w)
    assert drawn["height"] > page_h
    assert drawn["x"] == pytest.approx(0)
    assert drawn["y"] == pytest.approx((page_h - page_w) / 2)
