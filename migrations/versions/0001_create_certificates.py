"""create certificates table for issued certificate rows"""

from alembic import op
import sqlalchemy as sa

revision = "0001_create_certificates"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "certificates",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("certificate_code", sa.String(length=64), nullable=False),
        sa.Column("recipient_name", sa.String(length=255), nullable=False),
        sa.Column("recipient_email", sa.String(length=255), nullable=False, server_default=""),
        sa.Column("recipient_id", sa.String(length=255)),
        sa.Column("course_name", sa.String(length=255)),
        sa.Column("template_id", sa.String(length=64)),
        sa.Column("issue_date", sa.Date(), nullable=False),
        sa.Column("qr_code_data", sa.Text()),
        sa.Column("status", sa.String(length=20), nullable=False, server_default="active"),
        sa.Column("certificate_pdf_url", sa.Text()),
        sa.Column("created_at", sa.DateTime(), server_default=sa.func.now()),
        sa.UniqueConstraint("certificate_code", name="uq_certificates_certificate_code"),
    )
    op.create_index("idx_certificates_pdf_url", "certificates", ["certificate_pdf_url"])


def downgrade() -> None:
    op.drop_index("idx_certificates_pdf_url", table_name="certificates")
    op.drop_table("certificates")
