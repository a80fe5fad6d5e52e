"""account protection tables

login_attempts (append-only defter), account_lockouts (version ile koşullu yazım),
security_policies, rate_limit_hits, security_alerts, security_logs.

"""
from typing import Sequence, Union

import sqlalchemy as sa
from alembic import op


revision: str = "0001_account_protection"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        "login_attempts",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("subject_key", sa.String(), nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("success", sa.Boolean(), nullable=False),
        sa.Column("failure_reason", sa.String(), nullable=True),
        sa.Column("device_fingerprint", sa.String(), nullable=True),
        sa.Column("device_info", sa.JSON(), nullable=True),
        sa.Column("location_info", sa.JSON(), nullable=True),
        sa.Column("ip_address", sa.String(), nullable=True),
        sa.Column("user_agent", sa.String(), nullable=True),
    )
    op.create_index("ix_login_attempts_subject_key", "login_attempts", ["subject_key"])
    op.create_index("ix_login_attempts_created_at", "login_attempts", ["created_at"])
    op.create_index("ix_login_attempts_success", "login_attempts", ["success"])
    op.create_index("ix_login_attempts_device_fingerprint", "login_attempts", ["device_fingerprint"])

    op.create_table(
        "account_lockouts",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("subject_key", sa.String(), nullable=False),
        sa.Column("locked_until", sa.DateTime(), nullable=False),
        sa.Column("failed_attempts", sa.Integer(), nullable=False),
        sa.Column("reason", sa.String(), nullable=False),
        sa.Column("automatic_unlock", sa.Boolean(), nullable=False),
        sa.Column("version", sa.Integer(), nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
    )
    op.create_index("ix_account_lockouts_subject_key", "account_lockouts", ["subject_key"], unique=True)
    op.create_index("ix_account_lockouts_locked_until", "account_lockouts", ["locked_until"])

    op.create_table(
        "security_policies",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("subject_key", sa.String(), nullable=False),
        sa.Column("max_failed_attempts", sa.Integer(), nullable=False),
        sa.Column("lockout_duration_minutes", sa.Integer(), nullable=False),
        sa.Column("window_minutes", sa.Integer(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
    )
    op.create_index("ix_security_policies_subject_key", "security_policies", ["subject_key"], unique=True)

    op.create_table(
        "rate_limit_hits",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("subject_key", sa.String(), nullable=False),
        sa.Column("endpoint", sa.String(), nullable=False),
        sa.Column("ip_address", sa.String(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
    )
    op.create_index("ix_rate_limit_hits_subject_key", "rate_limit_hits", ["subject_key"])
    op.create_index("ix_rate_limit_hits_endpoint", "rate_limit_hits", ["endpoint"])
    op.create_index("ix_rate_limit_hits_created_at", "rate_limit_hits", ["created_at"])

    op.create_table(
        "security_alerts",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("subject_key", sa.String(), nullable=False),
        sa.Column("alert_type", sa.String(), nullable=False),
        sa.Column("severity", sa.String(), nullable=False),
        sa.Column("title", sa.String(), nullable=False),
        sa.Column("message", sa.String(), nullable=False),
        sa.Column("recommendation", sa.String(), nullable=True),
        sa.Column("resolved", sa.Boolean(), nullable=False),
        sa.Column("resolved_at", sa.DateTime(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
    )
    op.create_index("ix_security_alerts_subject_key", "security_alerts", ["subject_key"])
    op.create_index("ix_security_alerts_alert_type", "security_alerts", ["alert_type"])
    op.create_index("ix_security_alerts_resolved", "security_alerts", ["resolved"])

    op.create_table(
        "security_logs",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("event", sa.String(), nullable=False),
        sa.Column("subject_key", sa.String(), nullable=True),
        sa.Column("ip", sa.String(), nullable=True),
        sa.Column("endpoint", sa.String(), nullable=True),
        sa.Column("detail", sa.String(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
    )
    op.create_index("ix_security_logs_event", "security_logs", ["event"])
    op.create_index("ix_security_logs_subject_key", "security_logs", ["subject_key"])


def downgrade() -> None:
    for table in (
        "security_logs",
        "security_alerts",
        "rate_limit_hits",
        "security_policies",
        "account_lockouts",
        "login_attempts",
    ):
        op.drop_table(table)
