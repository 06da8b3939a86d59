"""create universe and index engine tables

Revision ID: 3c1d9e7f2a40
Revises:
Create Date: 2026-10-18 09:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = '3c1d9e7f2a40'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    # Universe
    op.create_table(
        'tickers',
        sa.Column('ticker', sa.String(20), primary_key=True),
        sa.Column('company_name', sa.String(255), nullable=True),
        sa.Column('asset_type', sa.String(20), nullable=False, server_default='STOCK'),
        sa.Column('exchange', sa.String(50), nullable=True),
        sa.Column('sector', sa.String(100), nullable=True),
        sa.Column('industry', sa.String(100), nullable=True),
        sa.Column('is_active', sa.Boolean(), server_default=sa.true()),
        sa.Column('created_at', sa.DateTime(), server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime(), server_default=sa.func.now(), onupdate=sa.func.now()),
    )

    op.create_table(
        'financial_snapshots',
        sa.Column('ticker', sa.String(20), sa.ForeignKey('tickers.ticker'), primary_key=True),
        sa.Column('as_of_date', sa.Date(), primary_key=True),
        sa.Column('price', sa.Float(), nullable=True),
        sa.Column('market_cap', sa.Float(), nullable=True),
        sa.Column('average_daily_volume', sa.Float(), nullable=True),
        sa.Column('eps', sa.Float(), nullable=True),
        sa.Column('book_value_per_share', sa.Float(), nullable=True),
        sa.Column('roe', sa.Float(), nullable=True),
        sa.Column('net_margin', sa.Float(), nullable=True),
        sa.Column('net_debt_ebitda', sa.Float(), nullable=True),
        sa.Column('payout', sa.Float(), nullable=True),
        sa.Column('dividend_yield', sa.Float(), nullable=True),
        sa.Column('pl', sa.Float(), nullable=True),
        sa.Column('pvp', sa.Float(), nullable=True),
        sa.Column('overall_score', sa.Float(), nullable=True),
        sa.Column('upside', sa.Float(), nullable=True),
        sa.Column('fair_value_model', sa.String(20), nullable=True),
        sa.Column('created_at', sa.DateTime(), server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime(), server_default=sa.func.now(), onupdate=sa.func.now()),
    )
    op.create_index('idx_snapshots_date', 'financial_snapshots', ['as_of_date'])

    op.create_table(
        'daily_prices',
        sa.Column('ticker', sa.String(20), primary_key=True),
        sa.Column('price_date', sa.Date(), primary_key=True),
        sa.Column('close', sa.Float(), nullable=False),
    )

    op.create_table(
        'dividends',
        sa.Column('ticker', sa.String(20), primary_key=True),
        sa.Column('ex_date', sa.Date(), primary_key=True),
        sa.Column('amount', sa.Float(), nullable=False),
    )

    # Index engine
    op.create_table(
        'index_definitions',
        sa.Column('index_id', sa.String(50), primary_key=True),
        sa.Column('name', sa.String(255), nullable=False),
        sa.Column('methodology', sa.Text(), nullable=True),
        sa.Column('config', sa.JSON(), nullable=False),
        sa.Column('base_value', sa.Float(), server_default='100.0'),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('created_at', sa.DateTime(), server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime(), server_default=sa.func.now(), onupdate=sa.func.now()),
    )

    op.create_table(
        'index_compositions',
        sa.Column('index_id', sa.String(50), sa.ForeignKey('index_definitions.index_id'), primary_key=True),
        sa.Column('ticker', sa.String(20), primary_key=True),
        sa.Column('target_weight', sa.Float(), nullable=False),
        sa.Column('entry_price', sa.Float(), nullable=False),
        sa.Column('entry_date', sa.Date(), nullable=False),
        sa.Column('as_of_date', sa.Date(), nullable=False),
    )

    op.create_table(
        'index_history_points',
        sa.Column('index_id', sa.String(50), sa.ForeignKey('index_definitions.index_id'), primary_key=True),
        sa.Column('date', sa.Date(), primary_key=True),
        sa.Column('points', sa.Float(), nullable=False),
        sa.Column('daily_change', sa.Float(), nullable=False),
        sa.Column('current_yield', sa.Float(), nullable=True),
        sa.Column('dividends_received', sa.Float(), server_default='0'),
        sa.Column('dividends_by_ticker', sa.JSON(), nullable=True),
        sa.Column('composition_snapshot', sa.JSON(), nullable=True),
        sa.Column('missing_prices', sa.JSON(), nullable=True),
        sa.Column('computed_at', sa.DateTime(), server_default=sa.func.now(), onupdate=sa.func.now()),
    )

    op.create_table(
        'index_rebalance_logs',
        sa.Column('id', sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column('index_id', sa.String(50), sa.ForeignKey('index_definitions.index_id'), nullable=False),
        sa.Column('date', sa.Date(), nullable=False),
        sa.Column('action', sa.String(10), nullable=False),
        sa.Column('ticker', sa.String(20), nullable=False),
        sa.Column('reason', sa.Text(), nullable=False),
        sa.Column('created_at', sa.DateTime(), server_default=sa.func.now()),
    )
    op.create_index(
        'idx_rebalance_log_index_date',
        'index_rebalance_logs',
        ['index_id', 'date']
    )


def downgrade() -> None:
    # Drop indexes first
    op.drop_index('idx_rebalance_log_index_date', table_name='index_rebalance_logs')
    op.drop_table('index_rebalance_logs')
    op.drop_table('index_history_points')
    op.drop_table('index_compositions')
    op.drop_table('index_definitions')
    op.drop_table('dividends')
    op.drop_table('daily_prices')
    op.drop_index('idx_snapshots_date', table_name='financial_snapshots')
    op.drop_table('financial_snapshots')
    op.drop_table('tickers')
