"""jammer schema

Revision ID: 5a3c1e7d9b20
Revises:
Create Date: 2025-10-01 18:12:40.318204

"""

from alembic import op
import sqlalchemy as sa
import sqlmodel

from models import UtcAwareDateTime
from models.types import utcnow

# revision identifiers, used by Alembic.
revision = "5a3c1e7d9b20"
down_revision = None
branch_labels = None
depends_on = None

STRING = sqlmodel.sql.sqltypes.AutoString


def upgrade() -> None:
    op.create_table(
        "profiles",
        sa.Column("id", STRING(), nullable=False),
        sa.Column("display_name", STRING(), nullable=False),
        sa.Column("instruments", sa.JSON(), nullable=False),
        sa.Column("genres", sa.JSON(), nullable=False),
        sa.Column("experience_level", STRING(), nullable=True),
        sa.Column("bio", STRING(), nullable=True),
        sa.Column("availability", STRING(), nullable=True),
        sa.Column("city", STRING(), nullable=True),
        sa.Column("country", STRING(), nullable=True),
        sa.Column("lat", sa.Float(), nullable=True),
        sa.Column("lng", sa.Float(), nullable=True),
        sa.Column("links", sa.JSON(), nullable=True),
        sa.Column("avatar_url", STRING(), nullable=True),
        sa.Column("is_online", sa.Boolean(), nullable=False),
        sa.Column("last_active_at", UtcAwareDateTime(timezone=True), nullable=True),
        sa.Column("created_at", UtcAwareDateTime(timezone=True), nullable=False),
        sa.Column("updated_at", UtcAwareDateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )
    with op.batch_alter_table("profiles", schema=None) as batch_op:
        batch_op.create_index(batch_op.f("ix_profiles_city"), ["city"], unique=False)
        batch_op.create_index(
            batch_op.f("ix_profiles_country"), ["country"], unique=False
        )

    op.create_table(
        "jams",
        sa.Column("id", STRING(), nullable=False),
        sa.Column("host_id", STRING(), nullable=False),
        sa.Column("title", STRING(), nullable=False),
        sa.Column("description", STRING(), nullable=True),
        sa.Column("jam_time", UtcAwareDateTime(timezone=True), nullable=False),
        sa.Column("city", STRING(), nullable=True),
        sa.Column("country", STRING(), nullable=True),
        sa.Column("lat", sa.Float(), nullable=True),
        sa.Column("lng", sa.Float(), nullable=True),
        sa.Column("desired_instruments", sa.JSON(), nullable=False),
        sa.Column("max_attendees", sa.Integer(), nullable=False),
        sa.Column("cover_image_url", STRING(), nullable=True),
        sa.Column("created_at", UtcAwareDateTime(timezone=True), nullable=False),
        sa.Column("updated_at", UtcAwareDateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(["host_id"], ["profiles.id"]),
        sa.PrimaryKeyConstraint("id"),
    )
    with op.batch_alter_table("jams", schema=None) as batch_op:
        batch_op.create_index(batch_op.f("ix_jams_host_id"), ["host_id"], unique=False)
        batch_op.create_index(batch_op.f("ix_jams_jam_time"), ["jam_time"], unique=False)

    op.create_table(
        "connections",
        sa.Column("id", STRING(), nullable=False),
        sa.Column("requester_id", STRING(), nullable=False),
        sa.Column("receiver_id", STRING(), nullable=False),
        sa.Column(
            "status",
            sa.Enum("pending", "connected", name="connectionstatus"),
            nullable=False,
        ),
        sa.Column("context_jam_id", STRING(), nullable=True),
        sa.Column("created_at", UtcAwareDateTime(timezone=True), nullable=False),
        sa.Column("updated_at", UtcAwareDateTime(timezone=True), nullable=False),
        sa.Column("resolved_at", UtcAwareDateTime(timezone=True), nullable=True),
        sa.ForeignKeyConstraint(["context_jam_id"], ["jams.id"]),
        sa.ForeignKeyConstraint(["receiver_id"], ["profiles.id"]),
        sa.ForeignKeyConstraint(["requester_id"], ["profiles.id"]),
        sa.PrimaryKeyConstraint("id"),
    )
    with op.batch_alter_table("connections", schema=None) as batch_op:
        batch_op.create_index(
            batch_op.f("ix_connections_requester_id"), ["requester_id"], unique=False
        )
        batch_op.create_index(
            batch_op.f("ix_connections_receiver_id"), ["receiver_id"], unique=False
        )
        batch_op.create_index(
            batch_op.f("ix_connections_status"), ["status"], unique=False
        )

    op.create_table(
        "jam_members",
        sa.Column("jam_id", STRING(), nullable=False),
        sa.Column("user_id", STRING(), nullable=False),
        sa.Column(
            "role", sa.Enum("host", "attendee", name="memberrole"), nullable=False
        ),
        sa.Column(
            "status",
            sa.Enum("pending", "approved", "declined", name="memberstatus"),
            nullable=False,
        ),
        sa.Column("joined_at", UtcAwareDateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(["jam_id"], ["jams.id"]),
        sa.ForeignKeyConstraint(["user_id"], ["profiles.id"]),
        sa.PrimaryKeyConstraint("jam_id", "user_id"),
    )
    with op.batch_alter_table("jam_members", schema=None) as batch_op:
        batch_op.create_index(
            batch_op.f("ix_jam_members_status"), ["status"], unique=False
        )

    op.create_table(
        "dms",
        sa.Column("id", STRING(), nullable=False),
        sa.Column("user_a", STRING(), nullable=False),
        sa.Column("user_b", STRING(), nullable=False),
        sa.Column("created_at", UtcAwareDateTime(timezone=True), nullable=False),
        sa.Column(
            "user_a_last_read_at", UtcAwareDateTime(timezone=True), nullable=True
        ),
        sa.Column(
            "user_b_last_read_at", UtcAwareDateTime(timezone=True), nullable=True
        ),
        sa.ForeignKeyConstraint(["user_a"], ["profiles.id"]),
        sa.ForeignKeyConstraint(["user_b"], ["profiles.id"]),
        sa.PrimaryKeyConstraint("id"),
    )
    with op.batch_alter_table("dms", schema=None) as batch_op:
        batch_op.create_index(batch_op.f("ix_dms_user_a"), ["user_a"], unique=False)
        batch_op.create_index(batch_op.f("ix_dms_user_b"), ["user_b"], unique=False)

    op.create_table(
        "messages",
        sa.Column("id", STRING(), nullable=False),
        sa.Column("room_type", sa.Enum("dm", "jam", name="roomtype"), nullable=False),
        sa.Column("room_id", STRING(), nullable=False),
        sa.Column("sender_id", STRING(), nullable=False),
        sa.Column("content", STRING(), nullable=False),
        sa.Column(
            "created_at",
            UtcAwareDateTime(timezone=True),
            server_default=utcnow(),
            nullable=False,
        ),
        sa.ForeignKeyConstraint(["sender_id"], ["profiles.id"]),
        sa.PrimaryKeyConstraint("id"),
    )
    with op.batch_alter_table("messages", schema=None) as batch_op:
        batch_op.create_index(
            batch_op.f("ix_messages_room_type"), ["room_type"], unique=False
        )
        batch_op.create_index(batch_op.f("ix_messages_room_id"), ["room_id"], unique=False)
        batch_op.create_index(
            batch_op.f("ix_messages_sender_id"), ["sender_id"], unique=False
        )
        batch_op.create_index(
            batch_op.f("ix_messages_created_at"), ["created_at"], unique=False
        )


def downgrade() -> None:
    for table in ("messages", "dms", "jam_members", "connections", "jams", "profiles"):
        op.drop_table(table)
    for enum_name in ("roomtype", "memberstatus", "memberrole", "connectionstatus"):
        sa.Enum(name=enum_name).drop(op.get_bind(), checkfirst=True)
