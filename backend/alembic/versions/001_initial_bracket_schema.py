"""Initial migration: create tournament, event, entrant, match, team tables

Revision ID: 001_initial
Revises:
Create Date: 2026-10-19 00:00:00.000000

"""

import sqlalchemy as sa

from alembic import op

# revision identifiers, used by Alembic.
revision = "001_initial"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "tournament",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("name", sa.String(), nullable=False),
        sa.Column("location", sa.String(), nullable=True),
        sa.Column("start_date", sa.Date(), nullable=True),
        sa.Column("end_date", sa.Date(), nullable=True),
        sa.Column("notes", sa.String(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )

    # roster_kind / gender_constraint are nullable: singles events form no rosters
    op.create_table(
        "event",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("tournament_id", sa.Integer(), nullable=False),
        sa.Column("name", sa.String(), nullable=False),
        sa.Column("roster_kind", sa.String(), nullable=True),
        sa.Column("gender_constraint", sa.String(), nullable=True),
        sa.Column("min_roster_size", sa.Integer(), nullable=True),
        sa.Column("max_roster_size", sa.Integer(), nullable=True),
        sa.Column("series_format", sa.Integer(), nullable=False),
        sa.Column("notes", sa.String(), nullable=True),
        sa.PrimaryKeyConstraint("id"),
        sa.ForeignKeyConstraint(
            ["tournament_id"],
            ["tournament.id"],
        ),
        sa.UniqueConstraint("tournament_id", "name", name="uq_tournament_event"),
    )

    op.create_table(
        "entrant",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("tournament_id", sa.Integer(), nullable=False),
        sa.Column("event_id", sa.Integer(), nullable=False),
        sa.Column("display_name", sa.String(), nullable=False),
        sa.Column("gender", sa.String(), nullable=True),
        sa.Column("registered_at", sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sa.ForeignKeyConstraint(["tournament_id"], ["tournament.id"]),
        sa.ForeignKeyConstraint(["event_id"], ["event.id"]),
    )
    op.create_index(op.f("ix_entrant_tournament_id"), "entrant", ["tournament_id"], unique=False)
    op.create_index(op.f("ix_entrant_event_id"), "entrant", ["event_id"], unique=False)

    # Slot kind is EMPTY | BYE | ENTRANT | PLACEHOLDER; version guards every write
    op.create_table(
        "match",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("tournament_id", sa.Integer(), nullable=False),
        sa.Column("event_id", sa.Integer(), nullable=False),
        sa.Column("match_code", sa.String(), nullable=False),
        sa.Column("bracket_role", sa.String(), nullable=False),
        sa.Column("round_number", sa.Integer(), nullable=False),
        sa.Column("sequence_in_round", sa.Integer(), nullable=False),
        sa.Column("slot_a_kind", sa.String(), nullable=False),
        sa.Column("slot_a_entrant_id", sa.Integer(), nullable=True),
        sa.Column("slot_a_source_match_id", sa.Integer(), nullable=True),
        sa.Column("slot_b_kind", sa.String(), nullable=False),
        sa.Column("slot_b_entrant_id", sa.Integer(), nullable=True),
        sa.Column("slot_b_source_match_id", sa.Integer(), nullable=True),
        sa.Column("next_match_id", sa.Integer(), nullable=True),
        sa.Column("loser_next_match_id", sa.Integer(), nullable=True),
        sa.Column("source_match_ids", sa.JSON(), nullable=False),
        sa.Column("status", sa.String(), nullable=False),
        sa.Column("series_format", sa.Integer(), nullable=False),
        sa.Column("winner_slot", sa.String(), nullable=True),
        sa.Column("sets_won_a", sa.Integer(), nullable=True),
        sa.Column("sets_won_b", sa.Integer(), nullable=True),
        sa.Column("outcome_kind", sa.String(), nullable=True),
        sa.Column("version", sa.Integer(), nullable=False),
        sa.Column("started_at", sa.DateTime(), nullable=True),
        sa.Column("completed_at", sa.DateTime(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sa.ForeignKeyConstraint(["tournament_id"], ["tournament.id"]),
        sa.ForeignKeyConstraint(["event_id"], ["event.id"]),
        sa.ForeignKeyConstraint(["slot_a_entrant_id"], ["entrant.id"]),
        sa.ForeignKeyConstraint(["slot_b_entrant_id"], ["entrant.id"]),
        sa.ForeignKeyConstraint(["next_match_id"], ["match.id"]),
        sa.ForeignKeyConstraint(["loser_next_match_id"], ["match.id"]),
        sa.UniqueConstraint("event_id", "match_code", name="uq_match_event_code"),
    )
    op.create_index(op.f("ix_match_tournament_id"), "match", ["tournament_id"], unique=False)
    op.create_index(op.f("ix_match_event_id"), "match", ["event_id"], unique=False)

    op.create_table(
        "team",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("event_id", sa.Integer(), nullable=False),
        sa.Column("kind", sa.String(), nullable=False),
        sa.Column("name", sa.String(), nullable=False),
        sa.Column("member_ids", sa.JSON(), nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sa.ForeignKeyConstraint(["event_id"], ["event.id"]),
        sa.UniqueConstraint("event_id", "name", name="uq_event_team_name"),
    )
    op.create_index(op.f("ix_team_event_id"), "team", ["event_id"], unique=False)


def downgrade() -> None:
    op.drop_index(op.f("ix_team_event_id"), table_name="team")
    op.drop_table("team")
    op.drop_index(op.f("ix_match_event_id"), table_name="match")
    op.drop_index(op.f("ix_match_tournament_id"), table_name="match")
    op.drop_table("match")
    op.drop_index(op.f("ix_entrant_event_id"), table_name="entrant")
    op.drop_index(op.f("ix_entrant_tournament_id"), table_name="entrant")
    op.drop_table("entrant")
    op.drop_table("event")
    op.drop_table("tournament")
