"""Render a certificate template plus recipient data into a one-page PDF.

The layout is composed on a fixed 1200 x 848 canvas (the size templates are
designed against), rasterized at 3x with Pillow, then placed on a landscape
A4 page with reportlab using a cover fit.
"""

from __future__ import annotations

import base64
import binascii
import logging
import os
import time
from io import BytesIO
from typing import Callable

import requests
from PIL import Image, ImageColor, ImageDraw, ImageFilter, ImageFont, ImageOps
from reportlab.lib.pagesizes import A4, landscape
from reportlab.lib.utils import ImageReader
from reportlab.pdfgen import canvas

from ..shared.entities import Field, Recipient, Template
from ..shared.time import fmt_long_date_es

logger = logging.getLogger("certdesk.render")

CANVAS_WIDTH = 1200
CANVAS_HEIGHT = 848
RENDER_SCALE = 3
IMAGE_LOAD_TIMEOUT_SECONDS = 10
SETTLE_SECONDS = 0.5
DEFAULT_FONT_SIZE = 16
DEFAULT_COLOR = "#000"
_SHADOW_OFFSET = 2
_SHADOW_BLUR = 4
_SHADOW_RGBA = (255, 255, 255, 204)

_FONT_PATHS = {
    "sans": "/usr/share/fonts/truetype/dejavu/DejaVuSans-Bold.ttf",
    "serif": "/usr/share/fonts/truetype/dejavu/DejaVuSerif-Bold.ttf",
    "mono": "/usr/share/fonts/truetype/dejavu/DejaVuSansMono-Bold.ttf",
}
_DEFAULT_FONT_PATH = _FONT_PATHS["sans"]

ImageLoader = Callable[[str, float], Image.Image]


class TemplateImageError(RuntimeError):
    """Raised when a template background cannot be loaded."""


def field_text(field: Field, recipient: Recipient) -> str:
    """Resolve the text printed for ``field``; QR fields have no text."""
    if field.type == "text":
        if field.name == "recipient":
            return recipient.name
        if field.name == "course":
            return recipient.course or field.default_value or ""
        custom = (recipient.custom_fields or {}).get(field.name)
        if custom:
            return custom
        return field.default_value or ""
    if field.type == "date":
        return fmt_long_date_es(recipient.issue_date)
    return ""


def _assets_root() -> str:
    return os.path.join(os.path.dirname(os.path.dirname(__file__)), "assets")


def load_template_image(
    image_url: str,
    timeout: float = IMAGE_LOAD_TIMEOUT_SECONDS,
    assets_root: str | None = None,
) -> Image.Image:
    """Fetch a template background from a URL, data URI or assets path."""
    raw = (image_url or "").strip()
    if not raw:
        raise TemplateImageError("Failed to load template image: no image configured")
    try:
        if raw.startswith("data:"):
            _, _, encoded = raw.partition(",")
            data = base64.b64decode(encoded)
        elif raw.startswith(("http://", "https://")):
            resp = requests.get(raw, timeout=timeout)
            resp.raise_for_status()
            data = resp.content
        else:
            root = assets_root or _assets_root()
            path = raw if os.path.isfile(raw) else os.path.join(root, raw.lstrip("/"))
            with open(path, "rb") as fh:
                data = fh.read()
        image = Image.open(BytesIO(data))
        image.load()
    except requests.Timeout as exc:
        raise TemplateImageError("Template image load timeout") from exc
    except (OSError, ValueError, binascii.Error, requests.RequestException) as exc:
        raise TemplateImageError(f"Failed to load template image: {exc}") from exc
    return image.convert("RGB")


def _font_path(font_family: str | None) -> str:
    first = (font_family or "").split(",")[0].strip().strip("'\"").lower()
    if "mono" in first or first.startswith("courier"):
        return _FONT_PATHS["mono"]
    if first == "serif" or ("serif" in first and "sans" not in first) or first.startswith("times"):
        return _FONT_PATHS["serif"]
    return _DEFAULT_FONT_PATH


def _load_font(font_family: str | None, size_px: int) -> ImageFont.ImageFont:
    size_px = max(size_px, 1)
    path = _font_path(font_family)
    for candidate in (path, _DEFAULT_FONT_PATH):
        try:
            return ImageFont.truetype(candidate, size_px)
        except OSError:
            continue
    logger.warning("[CERT-PDF] no TrueType font for %r; using default", font_family)
    return ImageFont.load_default(size=size_px)


def _parse_color(value: str | None) -> tuple[int, int, int]:
    try:
        return ImageColor.getrgb(value or DEFAULT_COLOR)[:3]
    except ValueError:
        return ImageColor.getrgb(DEFAULT_COLOR)[:3]


def _text_origin(
    font: ImageFont.ImageFont, text: str, center_x: float, center_y: float
) -> tuple[int, int]:
    left, top, right, bottom = font.getbbox(text)
    x_px = int(round(center_x - (right - left) / 2 - left))
    y_px = int(round(center_y - (bottom - top) / 2 - top))
    return x_px, y_px


def compose_certificate(
    template: Template,
    recipient: Recipient,
    background: Image.Image,
    scale: int = RENDER_SCALE,
) -> Image.Image:
    """Paint background and text fields; returns an RGB bitmap at ``scale``."""
    size = (CANVAS_WIDTH * scale, CANVAS_HEIGHT * scale)
    page = Image.new("RGB", size, "white")
    page.paste(ImageOps.fit(background, size, method=Image.LANCZOS), (0, 0))

    shadow = Image.new("RGBA", size, (255, 255, 255, 0))
    shadow_draw = ImageDraw.Draw(shadow)
    texts: list[tuple[str, ImageFont.ImageFont, tuple[int, int], tuple[int, int, int]]] = []

    for field in template.fields:
        if field.type == "qrcode":
            continue
        text = field_text(field, recipient)
        if not text:
            continue
        font = _load_font(field.font_family, int(round((field.font_size or DEFAULT_FONT_SIZE) * scale)))
        center_x = float(field.x) / 100.0 * size[0]
        center_y = float(field.y) / 100.0 * size[1]
        origin = _text_origin(font, text, center_x, center_y)
        offset = _SHADOW_OFFSET * scale
        shadow_draw.text(
            (origin[0] + offset, origin[1] + offset), text, font=font, fill=_SHADOW_RGBA
        )
        texts.append((text, font, origin, _parse_color(field.color)))

    if texts:
        shadow = shadow.filter(ImageFilter.GaussianBlur(_SHADOW_BLUR * scale / 2))
        page = Image.alpha_composite(page.convert("RGBA"), shadow).convert("RGB")
    draw = ImageDraw.Draw(page)
    for text, font, origin, fill in texts:
        draw.text(origin, text, font=font, fill=fill)
    return page


def bitmap_to_pdf(bitmap: Image.Image) -> bytes:
    """Place ``bitmap`` on a landscape A4 page, scaled to cover it fully."""
    png = BytesIO()
    bitmap.save(png, format="PNG")
    png.seek(0)

    page_w, page_h = landscape(A4)
    img_w, img_h = bitmap.size
    ratio = max(page_w / img_w, page_h / img_h)
    draw_w = img_w * ratio
    draw_h = img_h * ratio
    x = (page_w - draw_w) / 2
    y = (page_h - draw_h) / 2

    buffer = BytesIO()
    c = canvas.Canvas(buffer, pagesize=(page_w, page_h), pageCompression=1)
    c.drawImage(ImageReader(png), x, y, width=draw_w, height=draw_h)
    c.showPage()
    c.save()
    return buffer.getvalue()


def render_certificate_pdf(
    template: Template,
    recipient: Recipient,
    *,
    image_loader: ImageLoader | None = None,
    settle_seconds: float = SETTLE_SECONDS,
    scale: int = RENDER_SCALE,
) -> bytes:
    """Return PDF bytes for ``recipient`` printed on ``template``.

    Image load failures raise :class:`TemplateImageError`; rasterization and
    encoding errors propagate unchanged.
    """
    loader = image_loader or load_template_image
    background = loader(template.image_url, IMAGE_LOAD_TIMEOUT_SECONDS)
    if settle_seconds > 0:
        time.sleep(settle_seconds)
    bitmap = compose_certificate(template, recipient, background, scale=scale)
    pdf_bytes = bitmap_to_pdf(bitmap)
    logger.info(
        "[CERT-PDF] rendered template=%s recipient=%s bytes=%d",
        template.id,
        recipient.id,
        len(pdf_bytes),
    )
    return pdf_bytes
