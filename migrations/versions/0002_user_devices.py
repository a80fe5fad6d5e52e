"""user devices registry

Başarılı girişte kaydedilen cihazlar; (subject_key, device_fingerprint) tekil.

"""
from typing import Sequence, Union

import sqlalchemy as sa
from alembic import op


revision: str = "0002_user_devices"
down_revision: Union[str, None] = "0001_account_protection"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        "user_devices",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("subject_key", sa.String(), nullable=False),
        sa.Column("device_fingerprint", sa.String(), nullable=False),
        sa.Column("device_name", sa.String(), nullable=True),
        sa.Column("device_type", sa.String(), nullable=True),
        sa.Column("os_name", sa.String(), nullable=True),
        sa.Column("os_version", sa.String(), nullable=True),
        sa.Column("app_version", sa.String(), nullable=True),
        sa.Column("model_name", sa.String(), nullable=True),
        sa.Column("brand", sa.String(), nullable=True),
        sa.Column("trusted", sa.Boolean(), nullable=False),
        sa.Column("first_seen", sa.DateTime(), nullable=False),
        sa.Column("last_seen", sa.DateTime(), nullable=False),
        sa.UniqueConstraint("subject_key", "device_fingerprint", name="uq_user_devices_subject_fingerprint"),
    )
    op.create_index("ix_user_devices_subject_key", "user_devices", ["subject_key"])
    op.create_index("ix_user_devices_device_fingerprint", "user_devices", ["device_fingerprint"])


def downgrade() -> None:
    op.drop_table("user_devices")
