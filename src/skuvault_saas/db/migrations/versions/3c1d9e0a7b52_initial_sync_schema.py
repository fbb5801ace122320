"""Initial schema for tenants, customers, users and mirrored SkuVault data.

- tenants
- customers
- users
- products
- locations
- inventory_levels
- inventory_movements (append-only, dedup_key per customer)
- transactions (append-only, sku_vault_id per customer)
"""

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = "3c1d9e0a7b52"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

# SQLite only autoincrements INTEGER PRIMARY KEY columns.
_BIG_PK = sa.BigInteger().with_variant(sa.Integer(), "sqlite")


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    ]


def upgrade() -> None:
    # Tenants
    op.create_table(
        "tenants",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("name", sa.Text(), nullable=False),
        sa.Column("skuvault_email", sa.Text(), nullable=True),
        sa.Column("skuvault_account_id", sa.Text(), nullable=True),
        sa.Column("skuvault_tenant_token", sa.Text(), nullable=True),
        sa.Column("skuvault_user_token", sa.Text(), nullable=True),
        *_timestamps(),
        sa.UniqueConstraint("name", name="uq_tenants_name"),
    )

    # Customers
    op.create_table(
        "customers",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("external_id", sa.Text(), nullable=False),
        sa.Column("name", sa.Text(), nullable=False),
        sa.Column("email", sa.Text(), nullable=False),
        sa.Column("tenant_id", sa.Integer(), nullable=False),
        sa.Column("membership_level", sa.Integer(), server_default="1", nullable=False),
        sa.Column("last_synced_at", sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
        sa.ForeignKeyConstraint(
            ["tenant_id"], ["tenants.id"], name="fk_customers_tenant_id_tenants", ondelete="CASCADE"
        ),
    )
    op.create_index("ix_customers_tenant_id", "customers", ["tenant_id"])

    # Users
    op.create_table(
        "users",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("email", sa.Text(), nullable=False),
        sa.Column("full_name", sa.Text(), nullable=True),
        sa.Column("hashed_password", sa.Text(), nullable=False),
        sa.Column("is_active", sa.Boolean(), server_default="1", nullable=False),
        sa.Column("is_admin", sa.Boolean(), server_default="0", nullable=False),
        sa.Column("customer_id", sa.Integer(), nullable=True),
        *_timestamps(),
        sa.ForeignKeyConstraint(
            ["customer_id"], ["customers.id"], name="fk_users_customer_id_customers", ondelete="CASCADE"
        ),
        sa.UniqueConstraint("email", name="uq_users_email"),
    )
    op.create_index("ix_users_customer_id", "users", ["customer_id"])

    # Products
    op.create_table(
        "products",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("customer_id", sa.Integer(), nullable=False),
        sa.Column("sku", sa.Text(), nullable=False),
        sa.Column("name", sa.Text(), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("category", sa.Text(), nullable=True),
        sa.Column("cost", sa.Numeric(18, 4), nullable=True),
        sa.Column("price", sa.Numeric(18, 4), nullable=True),
        *_timestamps(),
        sa.ForeignKeyConstraint(
            ["customer_id"], ["customers.id"], name="fk_products_customer_id_customers", ondelete="CASCADE"
        ),
        sa.UniqueConstraint("customer_id", "sku", name="uq_products_customer_sku"),
    )
    op.create_index("ix_products_customer_id", "products", ["customer_id"])

    # Locations
    op.create_table(
        "locations",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("customer_id", sa.Integer(), nullable=False),
        sa.Column("code", sa.Text(), nullable=False),
        sa.Column("name", sa.Text(), nullable=True),
        sa.Column("warehouse", sa.Text(), nullable=True),
        sa.Column("is_active", sa.Boolean(), server_default="1", nullable=False),
        *_timestamps(),
        sa.ForeignKeyConstraint(
            ["customer_id"], ["customers.id"], name="fk_locations_customer_id_customers", ondelete="CASCADE"
        ),
        sa.UniqueConstraint("customer_id", "code", name="uq_locations_customer_code"),
    )
    op.create_index("ix_locations_customer_id", "locations", ["customer_id"])

    # Inventory levels (current state, upserted in place)
    op.create_table(
        "inventory_levels",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("customer_id", sa.Integer(), nullable=False),
        sa.Column("product_id", sa.Integer(), nullable=False),
        sa.Column("location_id", sa.Integer(), nullable=False),
        sa.Column("quantity_on_hand", sa.Integer(), nullable=False),
        sa.Column("quantity_available", sa.Integer(), nullable=False),
        sa.Column("quantity_allocated", sa.Integer(), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.ForeignKeyConstraint(
            ["customer_id"], ["customers.id"], name="fk_inventory_levels_customer_id_customers", ondelete="CASCADE"
        ),
        sa.ForeignKeyConstraint(
            ["product_id"], ["products.id"], name="fk_inventory_levels_product_id_products", ondelete="CASCADE"
        ),
        sa.ForeignKeyConstraint(
            ["location_id"], ["locations.id"], name="fk_inventory_levels_location_id_locations", ondelete="CASCADE"
        ),
        sa.UniqueConstraint(
            "customer_id", "product_id", "location_id", name="uq_inventory_levels_customer_product_location"
        ),
    )
    op.create_index("ix_inventory_levels_customer_id", "inventory_levels", ["customer_id"])

    # Inventory movements (append-only)
    op.create_table(
        "inventory_movements",
        sa.Column("id", _BIG_PK, primary_key=True, autoincrement=True),
        sa.Column("customer_id", sa.Integer(), nullable=False),
        sa.Column("product_id", sa.Integer(), nullable=False),
        sa.Column("location_id", sa.Integer(), nullable=True),
        sa.Column("quantity_change", sa.Integer(), nullable=False),
        sa.Column("reason", sa.Text(), nullable=True),
        sa.Column("reference", sa.Text(), nullable=True),
        sa.Column("performed_by", sa.Text(), nullable=True),
        sa.Column("transaction_type", sa.Text(), nullable=True),
        sa.Column("context", sa.Text(), nullable=True),
        sa.Column("occurred_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("dedup_key", sa.Text(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.ForeignKeyConstraint(
            ["customer_id"], ["customers.id"], name="fk_inventory_movements_customer_id_customers", ondelete="CASCADE"
        ),
        sa.ForeignKeyConstraint(
            ["product_id"], ["products.id"], name="fk_inventory_movements_product_id_products", ondelete="CASCADE"
        ),
        sa.ForeignKeyConstraint(
            ["location_id"], ["locations.id"], name="fk_inventory_movements_location_id_locations", ondelete="SET NULL"
        ),
        sa.UniqueConstraint("customer_id", "dedup_key", name="uq_inventory_movements_customer_dedup_key"),
    )
    op.create_index("ix_inventory_movements_customer_id", "inventory_movements", ["customer_id"])
    op.create_index(
        "ix_inventory_movements_customer_occurred_at", "inventory_movements", ["customer_id", "occurred_at"]
    )

    # Transactions (append-only)
    op.create_table(
        "transactions",
        sa.Column("id", _BIG_PK, primary_key=True, autoincrement=True),
        sa.Column("customer_id", sa.Integer(), nullable=False),
        sa.Column("sku_vault_id", sa.Text(), nullable=False),
        sa.Column("product_id", sa.Integer(), nullable=False),
        sa.Column("location_id", sa.Integer(), nullable=True),
        sa.Column("sku", sa.Text(), nullable=False),
        sa.Column("quantity", sa.Integer(), nullable=False),
        sa.Column("quantity_before", sa.Integer(), nullable=False),
        sa.Column("quantity_after", sa.Integer(), nullable=False),
        sa.Column("transaction_type", sa.Text(), nullable=True),
        sa.Column("transaction_reason", sa.Text(), nullable=True),
        sa.Column("transaction_note", sa.Text(), nullable=True),
        sa.Column("context", sa.Text(), nullable=True),
        sa.Column("user", sa.Text(), nullable=True),
        sa.Column("performed_by", sa.Text(), nullable=True),
        sa.Column("transaction_date", sa.DateTime(timezone=True), nullable=False),
        sa.Column("synced_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.ForeignKeyConstraint(
            ["customer_id"], ["customers.id"], name="fk_transactions_customer_id_customers", ondelete="CASCADE"
        ),
        sa.ForeignKeyConstraint(
            ["product_id"], ["products.id"], name="fk_transactions_product_id_products", ondelete="CASCADE"
        ),
        sa.ForeignKeyConstraint(
            ["location_id"], ["locations.id"], name="fk_transactions_location_id_locations", ondelete="SET NULL"
        ),
        sa.UniqueConstraint("customer_id", "sku_vault_id", name="uq_transactions_customer_sku_vault_id"),
    )
    op.create_index("ix_transactions_customer_id", "transactions", ["customer_id"])
    op.create_index(
        "ix_transactions_customer_transaction_date", "transactions", ["customer_id", "transaction_date"]
    )


def downgrade() -> None:
    op.drop_index("ix_transactions_customer_transaction_date", table_name="transactions")
    op.drop_index("ix_transactions_customer_id", table_name="transactions")
    op.drop_table("transactions")
    op.drop_index("ix_inventory_movements_customer_occurred_at", table_name="inventory_movements")
    op.drop_index("ix_inventory_movements_customer_id", table_name="inventory_movements")
    op.drop_table("inventory_movements")
    op.drop_index("ix_inventory_levels_customer_id", table_name="inventory_levels")
    op.drop_table("inventory_levels")
    op.drop_index("ix_locations_customer_id", table_name="locations")
    op.drop_table("locations")
    op.drop_index("ix_products_customer_id", table_name="products")
    op.drop_table("products")
    op.drop_index("ix_users_customer_id", table_name="users")
    op.drop_table("users")
    op.drop_index("ix_customers_tenant_id", table_name="customers")
    op.drop_table("customers")
    op.drop_table("tenants")
