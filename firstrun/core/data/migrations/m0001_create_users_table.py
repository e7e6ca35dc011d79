"""Create the users table."""

from sqlalchemy import Column, Integer, MetaData, String, Table


def up(connection):
    metadata = MetaData()
    Table(
        "users",
        metadata,
        Column("id", Integer, primary_key=True, autoincrement=True),
        Column("fullname", String(255), nullable=False, default=""),
        Column("username", String(100), nullable=False, unique=True),
        Column("email", String(255), nullable=False, unique=True),
        Column("password", String(255), nullable=False),
        Column("role", String(50), nullable=False, default="user"),
        Column("status", Integer, nullable=False, default=1),
        Column("timezone", String(100), nullable=False, default="UTC"),
        Column("created", Integer, nullable=False, default=0),
        mysql_charset="utf8mb4",
        mysql_collate="utf8mb4_unicode_ci",
    )
    metadata.create_all(connection, checkfirst=False)
