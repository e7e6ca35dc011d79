"""Create the addons table (license bookkeeping)."""

from sqlalchemy import Column, Integer, MetaData, String, Table


def up(connection):
    metadata = MetaData()
    Table(
        "addons",
        metadata,
        Column("id", Integer, primary_key=True, autoincrement=True),
        Column("product_id", String(100), nullable=False),
        Column("version", String(50), nullable=False),
        Column("module_name", String(100), nullable=False),
        Column("purchase_code", String(255), nullable=False),
        Column("install_path", String(255), nullable=False, default=""),
        Column("created", Integer, nullable=False, default=0),
        mysql_charset="utf8mb4",
        mysql_collate="utf8mb4_unicode_ci",
    )
    metadata.create_all(connection, checkfirst=False)
