"""Create ChampStep tables

Revision ID: 001
Revises: None
Create Date: 2025-01-15 00:00:00.000000+00:00

What:  Identities (dancers, crews), claim requests, recommendations and
       competition results.

The partial unique indexes uq_dancer_claim_pending / uq_crew_claim_pending
are what guarantee at most one in-flight claim per identity; the service
level check alone cannot close the race between two concurrent submissions.
Claim and recommendation foreign keys are ON DELETE RESTRICT (audit trail).

Rollback: downgrade() drops every table (destructive).
"""

from typing import Sequence, Union
from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

revision: str = "001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _id_column() -> sa.Column:
    return sa.Column(
        "id",
        postgresql.UUID(as_uuid=True),
        server_default=sa.text("gen_random_uuid()"),
        nullable=False,
    )


def _timestamp(name: str, nullable: bool = False) -> sa.Column:
    if nullable:
        return sa.Column(name, sa.TIMESTAMP(timezone=True), nullable=True)
    return sa.Column(
        name,
        sa.TIMESTAMP(timezone=True),
        server_default=sa.text("CURRENT_TIMESTAMP"),
        nullable=False,
    )


def _genres(name: str = "genres") -> sa.Column:
    return sa.Column(
        name,
        postgresql.JSONB(),
        server_default=sa.text("'[]'::jsonb"),
        nullable=False,
    )


def upgrade() -> None:
    # ── Identities ────────────────────────────────────────────────────────
    op.create_table(
        "dancers",
        _id_column(),
        sa.Column("user_id", postgresql.UUID(as_uuid=True), nullable=True, comment="Owner; NULL while unclaimed"),
        sa.Column("nickname", sa.String(100), nullable=False),
        sa.Column("name", sa.String(100), nullable=False),
        sa.Column("crew", sa.String(100), nullable=True),
        _genres(),
        sa.Column("bio", sa.Text(), nullable=True),
        sa.Column("instagram_url", sa.String(500), nullable=True),
        sa.Column("youtube_url", sa.String(500), nullable=True),
        sa.Column("twitter_url", sa.String(500), nullable=True),
        sa.Column("avatar", sa.String(500), nullable=True),
        sa.Column("total_points", sa.Integer(), server_default=sa.text("0"), nullable=False),
        sa.Column("rank", sa.Integer(), nullable=True),
        sa.Column("is_verified", sa.Boolean(), server_default=sa.text("false"), nullable=False),
        _timestamp("created_at"),
        _timestamp("updated_at"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_dancers_user_id", "dancers", ["user_id"])
    op.create_index("idx_dancers_rank", "dancers", ["rank"])

    op.create_table(
        "crews",
        _id_column(),
        sa.Column("user_id", postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column("name", sa.String(100), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        _genres(),
        sa.Column("location", sa.String(200), nullable=True),
        sa.Column("instagram_url", sa.String(500), nullable=True),
        sa.Column("youtube_url", sa.String(500), nullable=True),
        sa.Column("is_verified", sa.Boolean(), server_default=sa.text("false"), nullable=False),
        _timestamp("created_at"),
        _timestamp("updated_at"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_crews_user_id", "crews", ["user_id"])

    # ── Competitions (referenced by claim evidence) ───────────────────────
    op.create_table(
        "competitions",
        _id_column(),
        sa.Column("event_name", sa.String(200), nullable=False),
        sa.Column("prize_pool", sa.Integer(), server_default=sa.text("0"), nullable=False,
                  comment="Prize pool in units of 10,000 KRW"),
        sa.Column("judge_count", sa.Integer(), server_default=sa.text("0"), nullable=False),
        sa.Column("participant_count", sa.Integer(), server_default=sa.text("0"), nullable=False),
        sa.Column("edition", sa.Integer(), server_default=sa.text("1"), nullable=False),
        sa.Column("event_start_date", sa.Date(), nullable=True),
        _timestamp("created_at"),
        sa.PrimaryKeyConstraint("id"),
    )

    # ── Claim requests ────────────────────────────────────────────────────
    claim_columns = lambda: [  # noqa: E731
        _id_column(),
        sa.Column("user_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("status", sa.String(20), server_default=sa.text("'pending'"), nullable=False),
        sa.Column("admin_note", sa.Text(), nullable=True),
        sa.Column("reviewed_by", postgresql.UUID(as_uuid=True), nullable=True),
        _timestamp("created_at"),
        _timestamp("approved_at", nullable=True),
        _timestamp("rejected_at", nullable=True),
        sa.Column("requested_name", sa.String(100), nullable=False),
        _genres("requested_genres"),
        sa.Column("requested_instagram_url", sa.String(500), nullable=True),
        sa.Column("requested_youtube_url", sa.String(500), nullable=True),
        sa.CheckConstraint("status IN ('pending', 'approved', 'rejected')"),
        sa.PrimaryKeyConstraint("id"),
    ]

    op.create_table(
        "dancer_claim_requests",
        *claim_columns(),
        sa.Column("dancer_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("requested_nickname", sa.String(100), nullable=False),
        sa.Column("requested_bio", sa.Text(), nullable=True),
        sa.Column("requested_twitter_url", sa.String(500), nullable=True),
        sa.Column("verification_method", sa.String(30), server_default=sa.text("'admin_approval'"), nullable=False),
        sa.Column("social_platform", sa.String(20), nullable=True),
        sa.Column("social_handle", sa.String(100), nullable=True),
        sa.Column("verification_code", sa.String(20), nullable=True),
        sa.Column("evidence_competition_id", postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column("evidence_url", sa.String(500), nullable=True),
        sa.Column("evidence_description", sa.Text(), nullable=True),
        sa.ForeignKeyConstraint(["dancer_id"], ["dancers.id"], ondelete="RESTRICT"),
        sa.ForeignKeyConstraint(["evidence_competition_id"], ["competitions.id"], ondelete="RESTRICT"),
        sa.CheckConstraint(
            "verification_method IN ('admin_approval', 'social_media', 'competition_record')"
        ),
    )
    op.create_index("ix_dancer_claim_requests_user_id", "dancer_claim_requests", ["user_id"])
    op.create_index("idx_dancer_claim_status", "dancer_claim_requests", ["status"])
    op.create_index(
        "uq_dancer_claim_pending",
        "dancer_claim_requests",
        ["dancer_id"],
        unique=True,
        postgresql_where=sa.text("status = 'pending'"),
    )

    op.create_table(
        "crew_claim_requests",
        *claim_columns(),
        sa.Column("crew_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("requested_description", sa.Text(), nullable=True),
        sa.Column("requested_location", sa.String(200), nullable=True),
        sa.ForeignKeyConstraint(["crew_id"], ["crews.id"], ondelete="RESTRICT"),
    )
    op.create_index("ix_crew_claim_requests_user_id", "crew_claim_requests", ["user_id"])
    op.create_index("idx_crew_claim_status", "crew_claim_requests", ["status"])
    op.create_index(
        "uq_crew_claim_pending",
        "crew_claim_requests",
        ["crew_id"],
        unique=True,
        postgresql_where=sa.text("status = 'pending'"),
    )

    # ── Recommendations ───────────────────────────────────────────────────
    op.create_table(
        "crew_recommendations",
        _id_column(),
        sa.Column("claim_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("recommender_user_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("recommender_dancer_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("message", sa.Text(), server_default=sa.text("''"), nullable=False),
        sa.Column("status", sa.String(20), server_default=sa.text("'pending'"), nullable=False),
        _timestamp("submitted_at"),
        _timestamp("reviewed_at", nullable=True),
        sa.CheckConstraint("status IN ('pending', 'approved', 'rejected')"),
        sa.ForeignKeyConstraint(["claim_id"], ["dancer_claim_requests.id"], ondelete="RESTRICT"),
        sa.ForeignKeyConstraint(["recommender_dancer_id"], ["dancers.id"], ondelete="RESTRICT"),
        sa.UniqueConstraint("claim_id", "recommender_user_id", name="uq_recommendation_claim_recommender"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("idx_recommendation_claim_status", "crew_recommendations", ["claim_id", "status"])

    op.create_table(
        "competition_results",
        _id_column(),
        sa.Column("competition_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("dancer_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("placement", sa.Integer(), nullable=True, comment="NULL = took part without placing"),
        sa.ForeignKeyConstraint(["competition_id"], ["competitions.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["dancer_id"], ["dancers.id"], ondelete="CASCADE"),
        sa.UniqueConstraint("competition_id", "dancer_id", name="uq_competition_result_dancer"),
        sa.PrimaryKeyConstraint("id"),
    )


def downgrade() -> None:
    op.drop_table("competition_results")
    op.drop_index("idx_recommendation_claim_status", table_name="crew_recommendations")
    op.drop_table("crew_recommendations")
    op.drop_index("uq_crew_claim_pending", table_name="crew_claim_requests")
    op.drop_index("idx_crew_claim_status", table_name="crew_claim_requests")
    op.drop_index("ix_crew_claim_requests_user_id", table_name="crew_claim_requests")
    op.drop_table("crew_claim_requests")
    op.drop_index("uq_dancer_claim_pending", table_name="dancer_claim_requests")
    op.drop_index("idx_dancer_claim_status", table_name="dancer_claim_requests")
    op.drop_index("ix_dancer_claim_requests_user_id", table_name="dancer_claim_requests")
    op.drop_table("dancer_claim_requests")
    op.drop_table("competitions")
    op.drop_index("ix_crews_user_id", table_name="crews")
    op.drop_table("crews")
    op.drop_index("idx_dancers_rank", table_name="dancers")
    op.drop_index("ix_dancers_user_id", table_name="dancers")
    op.drop_table("dancers")
