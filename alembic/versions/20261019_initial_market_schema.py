# alembic/versions/20261019_initial_market_schema.py
from alembic import op
import sqlalchemy as sa

# --- revision identifiers ---
revision = "20261019_initial_market_schema"
down_revision = None
branch_labels = None
depends_on = None


def _has_table(bind, name: str) -> bool:
    insp = sa.inspect(bind)
    return name in insp.get_table_names()


def upgrade() -> None:
    bind = op.get_bind()

    # 1) users (+ 대기 중 OTP)
    if not _has_table(bind, "users"):
        op.create_table(
            "users",
            sa.Column("id", sa.Integer(), primary_key=True),
            sa.Column("name", sa.String(), nullable=False),
            sa.Column("email", sa.String(), nullable=False),
            sa.Column("phone", sa.String(), nullable=False),
            sa.Column("password_hash", sa.String(), nullable=False),
            sa.Column("is_verified", sa.Boolean(), nullable=False, server_default=sa.false()),
            sa.Column("otp", sa.String(length=12), nullable=True),
            sa.Column("otp_expires_at", sa.DateTime(), nullable=True),
            sa.Column("otp_purpose", sa.String(length=32), nullable=True),
            sa.Column("created_at", sa.DateTime(), nullable=True),
            sa.CheckConstraint(
                "(otp IS NULL AND otp_expires_at IS NULL AND otp_purpose IS NULL) OR "
                "(otp IS NOT NULL AND otp_expires_at IS NOT NULL AND otp_purpose IS NOT NULL)",
                name="ck_user_otp_fields_together",
            ),
        )
        op.create_index("ix_users_id", "users", ["id"])
        op.create_index("ix_users_email", "users", ["email"], unique=True)
        op.create_index("ix_users_phone", "users", ["phone"], unique=True)

    # 2) items (fixed / auction)
    if not _has_table(bind, "items"):
        op.create_table(
            "items",
            sa.Column("id", sa.Integer(), primary_key=True),
            sa.Column("seller_id", sa.Integer(), sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
            sa.Column("title", sa.String(), nullable=False),
            sa.Column("description", sa.Text(), nullable=False),
            sa.Column("category", sa.String(), nullable=False),
            sa.Column("condition", sa.String(length=16), nullable=False),
            sa.Column("era", sa.String(), nullable=True),
            sa.Column("location", sa.String(), nullable=False),
            sa.Column("listing_type", sa.String(length=16), nullable=False),
            sa.Column("price", sa.Integer(), nullable=True),
            sa.Column("starting_bid", sa.Integer(), nullable=True),
            sa.Column("bid_increment", sa.Integer(), nullable=True),
            sa.Column("current_bid", sa.Integer(), nullable=True),
            sa.Column(
                "highest_bidder_id", sa.Integer(),
                sa.ForeignKey("users.id", ondelete="SET NULL"), nullable=True,
            ),
            sa.Column("bid_count", sa.Integer(), nullable=False, server_default="0"),
            sa.Column("auction_end_at", sa.DateTime(), nullable=True),
            sa.Column("status", sa.String(length=16), nullable=False),
            sa.Column("views", sa.Integer(), nullable=False, server_default="0"),
            sa.Column("created_at", sa.DateTime(), nullable=True),
            sa.Column("updated_at", sa.DateTime(), nullable=True),
            sa.CheckConstraint("condition IN ('new', 'used', 'antique')", name="ck_item_condition"),
            sa.CheckConstraint("status IN ('active', 'sold', 'delisted')", name="ck_item_status"),
            sa.CheckConstraint(
                "(listing_type = 'fixed' AND price IS NOT NULL AND starting_bid IS NULL "
                " AND bid_increment IS NULL AND current_bid IS NULL AND auction_end_at IS NULL) OR "
                "(listing_type = 'auction' AND price IS NULL AND starting_bid IS NOT NULL "
                " AND bid_increment IS NOT NULL AND current_bid IS NOT NULL AND auction_end_at IS NOT NULL)",
                name="ck_item_listing_fields",
            ),
            sa.CheckConstraint("bid_count >= 0", name="ck_item_bid_count_nonneg"),
        )
        op.create_index("ix_items_id", "items", ["id"])
        op.create_index("ix_items_seller_id", "items", ["seller_id"])
        op.create_index("ix_items_category", "items", ["category"])
        op.create_index("ix_items_highest_bidder_id", "items", ["highest_bidder_id"])
        op.create_index("ix_item_status_created", "items", ["status", "created_at"])
        op.create_index("ix_item_auction_sweep", "items", ["listing_type", "status", "auction_end_at"])

    # 3) item_images
    if not _has_table(bind, "item_images"):
        op.create_table(
            "item_images",
            sa.Column("id", sa.Integer(), primary_key=True),
            sa.Column("item_id", sa.Integer(), sa.ForeignKey("items.id", ondelete="CASCADE"), nullable=False),
            sa.Column("data", sa.LargeBinary(), nullable=False),
            sa.Column("content_type", sa.String(length=64), nullable=False),
            sa.Column("filename", sa.String(), nullable=False),
        )
        op.create_index("ix_item_images_id", "item_images", ["id"])
        op.create_index("ix_item_images_item_id", "item_images", ["item_id"])

    # 4) messages
    if not _has_table(bind, "messages"):
        op.create_table(
            "messages",
            sa.Column("id", sa.Integer(), primary_key=True),
            sa.Column("sender_id", sa.Integer(), sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
            sa.Column("receiver_id", sa.Integer(), sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
            sa.Column("text", sa.Text(), nullable=False),
            sa.Column("is_read", sa.Boolean(), nullable=False, server_default=sa.false()),
            sa.Column("created_at", sa.DateTime(), nullable=True),
        )
        op.create_index("ix_messages_id", "messages", ["id"])
        op.create_index("ix_messages_created_at", "messages", ["created_at"])
        op.create_index("ix_message_sender_receiver", "messages", ["sender_id", "receiver_id"])
        op.create_index("ix_message_receiver_read", "messages", ["receiver_id", "is_read"])

    # 5) reviews
    if not _has_table(bind, "reviews"):
        op.create_table(
            "reviews",
            sa.Column("id", sa.Integer(), primary_key=True),
            sa.Column("seller_id", sa.Integer(), sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
            sa.Column("reviewer_id", sa.Integer(), sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
            sa.Column("item_id", sa.Integer(), sa.ForeignKey("items.id", ondelete="SET NULL"), nullable=True),
            sa.Column("rating", sa.Integer(), nullable=False),
            sa.Column("comment", sa.String(length=500), nullable=False),
            sa.Column("created_at", sa.DateTime(), nullable=True),
            sa.Column("updated_at", sa.DateTime(), nullable=True),
            sa.UniqueConstraint("reviewer_id", "item_id", name="uq_review_once_per_reviewer_item"),
            sa.CheckConstraint("rating BETWEEN 1 AND 5", name="ck_review_rating_range"),
        )
        op.create_index("ix_reviews_id", "reviews", ["id"])
        op.create_index("ix_reviews_seller_id", "reviews", ["seller_id"])
        op.create_index("ix_reviews_reviewer_id", "reviews", ["reviewer_id"])
        op.create_index("ix_reviews_item_id", "reviews", ["item_id"])
        op.create_index("ix_review_seller_created", "reviews", ["seller_id", "created_at"])


def downgrade() -> None:
    for table in ("reviews", "messages", "item_images", "items", "users"):
        op.drop_table(table)
