"""Pricing desk schema: categories and pricing sessions

Revision ID: 001_pricing_schema
Revises:
Create Date: 2025-01-15 10:00:00.000000

"""
from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision = '001_pricing_schema'
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    # Category registry (markup per category name)
    op.create_table(
        'categories',
        sa.Column('id', sa.Text, primary_key=True),
        sa.Column('name', sa.Text, nullable=False, unique=True),
        sa.Column('markup_percentage', sa.Numeric, nullable=False, comment='Percent, 0-1000'),
        sa.Column('created_at', sa.TIMESTAMP(timezone=True), nullable=False, server_default=sa.text('NOW()')),
        sa.CheckConstraint('markup_percentage >= 0 AND markup_percentage <= 1000', name='ck_categories_markup_range'),
    )

    # Invoice pricing sessions (priced items frozen as JSONB)
    op.create_table(
        'invoice_pricing_sessions',
        sa.Column('id', sa.Text, primary_key=True),
        sa.Column('invoice_number', sa.Text),
        sa.Column('exchange_rate', sa.Numeric, nullable=False),
        sa.Column('rounding_option', sa.Integer, nullable=False, server_default='1000', comment='100, 1000 or 10000'),
        sa.Column('items', postgresql.JSONB, nullable=False, comment='Priced line items with category snapshot'),
        sa.Column('total_value', sa.Numeric, nullable=False, comment='Sum of final prices at materialization'),
        sa.Column('status', sa.Text, nullable=False, server_default='pending'),
        sa.Column('email_sent', sa.Boolean, nullable=False, server_default='false'),
        sa.Column('email_sent_at', sa.TIMESTAMP(timezone=True), comment='First report-sent event'),
        sa.Column('notes', sa.Text),
        sa.Column('created_at', sa.TIMESTAMP(timezone=True), nullable=False, server_default=sa.text('NOW()')),
        sa.CheckConstraint('exchange_rate > 0', name='ck_invoice_sessions_rate_positive'),
        sa.CheckConstraint('rounding_option IN (100, 1000, 10000)', name='ck_invoice_sessions_rounding'),
        sa.CheckConstraint("status IN ('pending', 'approved', 'rejected')", name='ck_invoice_sessions_status'),
    )
    op.create_index('idx_invoice_sessions_created', 'invoice_pricing_sessions', ['created_at'])
    op.create_index('idx_invoice_sessions_status', 'invoice_pricing_sessions', ['status'])

    # Marketplace pricing sessions (one listing per row)
    op.create_table(
        'marketplace_pricing_sessions',
        sa.Column('id', sa.Text, primary_key=True),
        sa.Column('source_url', sa.Text, nullable=False),
        sa.Column('product_name', sa.Text, nullable=False),
        sa.Column('unit_cost_usd', sa.Numeric, nullable=False),
        sa.Column('intermediate_price', sa.Numeric, nullable=False, comment='Cost + 7% fee'),
        sa.Column('markup_percentage', sa.Numeric, nullable=False),
        sa.Column('markup_source', sa.Text, nullable=False, server_default='tier', comment='tier or override'),
        sa.Column('selling_price_usd', sa.Numeric, nullable=False),
        sa.Column('selling_price_local', sa.Numeric, nullable=False),
        sa.Column('exchange_rate', sa.Numeric, nullable=False),
        sa.Column('status', sa.Text, nullable=False, server_default='pending'),
        sa.Column('email_sent', sa.Boolean, nullable=False, server_default='false'),
        sa.Column('email_sent_at', sa.TIMESTAMP(timezone=True)),
        sa.Column('notes', sa.Text, comment='Weight and local tax considerations'),
        sa.Column('created_at', sa.TIMESTAMP(timezone=True), nullable=False, server_default=sa.text('NOW()')),
        sa.CheckConstraint('exchange_rate > 0', name='ck_marketplace_sessions_rate_positive'),
        sa.CheckConstraint('markup_percentage >= 0 AND markup_percentage <= 500', name='ck_marketplace_sessions_markup_range'),
        sa.CheckConstraint("status IN ('pending', 'approved', 'rejected')", name='ck_marketplace_sessions_status'),
    )
    op.create_index('idx_marketplace_sessions_created', 'marketplace_pricing_sessions', ['created_at'])

    # email_sent is a one-way latch
    op.execute("""
        CREATE OR REPLACE FUNCTION prevent_email_sent_reset()
        RETURNS TRIGGER AS $$
        BEGIN
            IF OLD.email_sent AND NOT NEW.email_sent THEN
                RAISE EXCEPTION 'email_sent cannot be reset once true';
            END IF;
            RETURN NEW;
        END;
        $$ LANGUAGE plpgsql;
    """)

    for table in ['invoice_pricing_sessions', 'marketplace_pricing_sessions']:
        op.execute(f"""
            CREATE TRIGGER trg_{table}_email_sent_latch
            BEFORE UPDATE ON {table}
            FOR EACH ROW
            EXECUTE FUNCTION prevent_email_sent_reset();
        """)


def downgrade() -> None:
    for table in ['invoice_pricing_sessions', 'marketplace_pricing_sessions']:
        op.execute(f'DROP TRIGGER IF EXISTS trg_{table}_email_sent_latch ON {table}')
    op.execute('DROP FUNCTION IF EXISTS prevent_email_sent_reset()')

    op.drop_index('idx_marketplace_sessions_created', 'marketplace_pricing_sessions')
    op.drop_table('marketplace_pricing_sessions')

    op.drop_index('idx_invoice_sessions_status', 'invoice_pricing_sessions')
    op.drop_index('idx_invoice_sessions_created', 'invoice_pricing_sessions')
    op.drop_table('invoice_pricing_sessions')

    op.drop_table('categories')
