"""create_catalog_tables

Revision ID: 001_create_catalog_tables
Revises:
Create Date: 2026-10-18 12:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = '001_create_catalog_tables'
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


ENTITY_COLUMNS = {
    'planets': [
        'climate', 'diameter', 'rotation_period', 'orbital_period',
        'gravity', 'population', 'terrain', 'surface_water',
    ],
    'starships': [
        'model', 'starship_class', 'manufacturer', 'cost_in_credits', 'length',
        'crew', 'passengers', 'max_atmosphering_speed', 'hyperdrive_rating',
        'MGLT', 'cargo_capacity', 'consumables',
    ],
    'vehicles': [
        'model', 'vehicle_class', 'manufacturer', 'length', 'cost_in_credits',
        'crew', 'passengers', 'max_atmosphering_speed', 'cargo_capacity', 'consumables',
    ],
    'species': [
        'classification', 'designation', 'average_height', 'average_lifespan',
        'eye_colors', 'hair_colors', 'skin_colors', 'language',
    ],
    'people': [
        'height', 'mass', 'hair_color', 'skin_color', 'eye_color', 'birth_year', 'gender',
    ],
}

JOIN_TABLES = [
    ('people', 'films'),
    ('people', 'species'),
    ('people', 'starships'),
    ('people', 'vehicles'),
    ('films', 'planets'),
    ('films', 'species'),
    ('films', 'starships'),
    ('films', 'vehicles'),
]


def _base_columns(natural_key: str = 'name') -> list:
    return [
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('url', sa.String(length=255), nullable=False),
        sa.Column(natural_key, sa.String(length=255), nullable=False),
    ]


def _timestamp_columns() -> list:
    return [
        sa.Column('created', sa.DateTime(timezone=True), server_default=sa.text('CURRENT_TIMESTAMP'), nullable=False),
        sa.Column('edited', sa.DateTime(timezone=True), server_default=sa.text('CURRENT_TIMESTAMP'), nullable=False),
    ]


def _create_indexes(table: str, natural_key: str = 'name') -> None:
    op.create_index(op.f(f'ix_{table}_id'), table, ['id'], unique=False)
    op.create_index(op.f(f'ix_{table}_url'), table, ['url'], unique=False)
    op.create_index(op.f(f'ix_{table}_{natural_key}'), table, [natural_key], unique=False)


def upgrade() -> None:
    """Upgrade schema."""
    bind = op.get_bind()
    inspector = sa.inspect(bind)

    for table in ('planets', 'starships', 'vehicles'):
        if not inspector.has_table(table):
            op.create_table(
                table,
                *_base_columns(),
                *[sa.Column(c, sa.String(length=255), nullable=True) for c in ENTITY_COLUMNS[table]],
                *_timestamp_columns(),
                sa.PrimaryKeyConstraint('id'),
            )
            _create_indexes(table)

    for table in ('species', 'people'):
        if not inspector.has_table(table):
            op.create_table(
                table,
                *_base_columns(),
                *[sa.Column(c, sa.String(length=255), nullable=True) for c in ENTITY_COLUMNS[table]],
                sa.Column('homeworld_id', sa.Integer(), nullable=True),
                *_timestamp_columns(),
                sa.ForeignKeyConstraint(['homeworld_id'], ['planets.id'], ondelete='SET NULL'),
                sa.PrimaryKeyConstraint('id'),
            )
            _create_indexes(table)
            op.create_index(op.f(f'ix_{table}_homeworld_id'), table, ['homeworld_id'], unique=False)

    if not inspector.has_table('films'):
        op.create_table(
            'films',
            *_base_columns('title'),
            sa.Column('episode_id', sa.Integer(), nullable=True),
            sa.Column('opening_crawl', sa.Text(), nullable=True),
            sa.Column('director', sa.String(length=255), nullable=True),
            sa.Column('producer', sa.String(length=255), nullable=True),
            sa.Column('release_date', sa.Date(), nullable=True),
            *_timestamp_columns(),
            sa.PrimaryKeyConstraint('id'),
        )
        _create_indexes('films', 'title')

    if not inspector.has_table('images'):
        owners = ('people', 'films', 'planets', 'species', 'starships', 'vehicles')
        op.create_table(
            'images',
            *_base_columns(),
            sa.Column('description', sa.String(length=255), nullable=True),
            *[sa.Column(f'{owner}_id', sa.Integer(), nullable=True) for owner in owners],
            *[
                sa.ForeignKeyConstraint([f'{owner}_id'], [f'{owner}.id'], ondelete='SET NULL')
                for owner in owners
            ],
            sa.PrimaryKeyConstraint('id'),
        )
        _create_indexes('images')

    for first, second in JOIN_TABLES:
        table = f'{first}_{second}'
        if inspector.has_table(table):
            continue
        op.create_table(
            table,
            sa.Column(f'{first}_id', sa.Integer(), nullable=False),
            sa.Column(f'{second}_id', sa.Integer(), nullable=False),
            sa.ForeignKeyConstraint([f'{first}_id'], [f'{first}.id'], ondelete='CASCADE'),
            sa.ForeignKeyConstraint([f'{second}_id'], [f'{second}.id'], ondelete='CASCADE'),
            sa.PrimaryKeyConstraint(f'{first}_id', f'{second}_id'),
        )
        op.create_index(op.f(f'ix_{table}_{first}_id'), table, [f'{first}_id'], unique=False)
        op.create_index(op.f(f'ix_{table}_{second}_id'), table, [f'{second}_id'], unique=False)


def downgrade() -> None:
    """Downgrade schema."""
    bind = op.get_bind()
    inspector = sa.inspect(bind)

    tables = [f'{first}_{second}' for first, second in JOIN_TABLES]
    tables += ['images', 'films', 'people', 'species', 'vehicles', 'starships', 'planets']
    for table in tables:
        if inspector.has_table(table):
            op.drop_table(table)
