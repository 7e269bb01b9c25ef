from __future__ import annotations

from .entities import Field, Template, new_id

DEFAULT_FONT_FAMILY = "Sora, sans-serif"
DEFAULT_NAME_COLOR = "#1a365d"

# (id, display name); backgrounds ship under assets/certificate-templates/<id>.jpg
_BUILTIN_TEMPLATES: list[tuple[str, str]] = [
    ("proteccion-datos-personales", "Certificado de Protección de Datos Personales"),
    ("power-bi-avanzado", "Certificado de Power BI Avanzado"),
    ("excel-avanzado", "Certificado de Excel Avanzado"),
    ("datos-abiertos", "Certificado de Datos Abiertos"),
]


def _recipient_field() -> Field:
    return Field(
        id=new_id(),
        name="recipient",
        type="text",
        x=30,
        y=40,
        font_size=28,
        font_family=DEFAULT_FONT_FAMILY,
        color=DEFAULT_NAME_COLOR,
    )


DEFAULT_TEMPLATES: tuple[Template, ...] = tuple(
    Template(
        id=template_id,
        name=name,
        image_url=f"/assets/certificate-templates/{template_id}.jpg",
        fields=(_recipient_field(),),
    )
    for template_id, name in _BUILTIN_TEMPLATES
)
