"""create users and tracks tables

Revision ID: a1f3c9d2e4b7
Revises:
Create Date: 2026-01-01 12:00:00.000000

Hey future me - this is the BASELINE schema. Preferences, profile and stats of a user and the
file descriptors of a track are flattened into columns (no JSON blobs except tags) so the
counter UPDATEs can do `x = x + 1` in SQL.
"""

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = "a1f3c9d2e4b7"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    """Create users and tracks."""
    op.create_table(
        "users",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("name", sa.String(100), nullable=False),
        sa.Column("email", sa.String(255), nullable=False),
        sa.Column("password_hash", sa.String(255), nullable=False),
        sa.Column("role", sa.String(20), nullable=False, server_default="standard"),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default="1"),
        sa.Column("is_email_verified", sa.Boolean(), nullable=False, server_default="0"),
        # Preferences
        sa.Column("pref_language", sa.String(5), nullable=False, server_default="en"),
        sa.Column("pref_font_size", sa.String(10), nullable=False, server_default="medium"),
        sa.Column("pref_high_contrast", sa.Boolean(), nullable=False, server_default="0"),
        sa.Column("pref_notifications", sa.Boolean(), nullable=False, server_default="1"),
        # Profile
        sa.Column("avatar", sa.String(512), nullable=True),
        sa.Column("bio", sa.String(500), nullable=False, server_default=""),
        sa.Column("birth_year", sa.Integer(), nullable=True),
        # Stats
        sa.Column("songs_uploaded", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("songs_played", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("last_login", sa.DateTime(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
    )
    op.create_index("ix_users_email", "users", ["email"], unique=True)
    op.create_index("ix_users_role", "users", ["role"])
    op.create_index("ix_users_is_active", "users", ["is_active"])
    op.create_index("ix_users_created_at", "users", ["created_at"])

    op.create_table(
        "tracks",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("title", sa.String(200), nullable=False),
        sa.Column("artist", sa.String(100), nullable=False),
        sa.Column("album", sa.String(100), nullable=False, server_default=""),
        sa.Column("genre", sa.String(50), nullable=False, server_default=""),
        sa.Column("year", sa.Integer(), nullable=True),
        sa.Column("duration", sa.Integer(), nullable=True),
        sa.Column("lyrics", sa.Text(), nullable=False, server_default=""),
        sa.Column("language", sa.String(10), nullable=False, server_default="en"),
        sa.Column("tags", sa.JSON(), nullable=False),
        # Audio file descriptor
        sa.Column("audio_filename", sa.String(255), nullable=False),
        sa.Column("audio_original_name", sa.String(255), nullable=False),
        sa.Column("audio_mime_type", sa.String(100), nullable=False),
        sa.Column("audio_size", sa.Integer(), nullable=False),
        sa.Column("audio_url", sa.String(512), nullable=False),
        # Cover image descriptor (all NULL when there is no cover)
        sa.Column("cover_filename", sa.String(255), nullable=True),
        sa.Column("cover_original_name", sa.String(255), nullable=True),
        sa.Column("cover_mime_type", sa.String(100), nullable=True),
        sa.Column("cover_size", sa.Integer(), nullable=True),
        sa.Column("cover_url", sa.String(512), nullable=True),
        sa.Column("uploaded_by", sa.String(36), sa.ForeignKey("users.id"), nullable=False),
        # Moderation
        sa.Column("status", sa.String(20), nullable=False, server_default="pending"),
        sa.Column("moderation_notes", sa.Text(), nullable=False, server_default=""),
        sa.Column("moderated_by", sa.String(36), sa.ForeignKey("users.id"), nullable=True),
        sa.Column("moderated_at", sa.DateTime(), nullable=True),
        # Engagement stats
        sa.Column("play_count", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("favorite_count", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("download_count", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("last_played", sa.DateTime(), nullable=True),
        sa.Column("average_rating", sa.Float(), nullable=False, server_default="0"),
        sa.Column("rating_count", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default="1"),
        sa.Column("is_featured", sa.Boolean(), nullable=False, server_default="0"),
        sa.Column("featured_at", sa.DateTime(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
    )
    op.create_index("ix_tracks_uploaded_by", "tracks", ["uploaded_by"])
    op.create_index("ix_tracks_genre", "tracks", ["genre"])
    op.create_index("ix_tracks_language", "tracks", ["language"])
    op.create_index("ix_tracks_play_count", "tracks", ["play_count"])
    op.create_index("ix_tracks_created_at", "tracks", ["created_at"])
    op.create_index("ix_tracks_status_active", "tracks", ["status", "is_active"])
    op.create_index("ix_tracks_featured", "tracks", ["is_featured", "featured_at"])


def downgrade() -> None:
    """Drop tracks and users."""
    op.drop_table("tracks")
    op.drop_table("users")
