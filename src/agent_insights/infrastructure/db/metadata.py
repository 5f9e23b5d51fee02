"""SQLAlchemy table definitions for the chat-store tables read by the dashboard.

Only the columns the metric queries touch are declared. The tables belong to
the messaging gateway; this service never creates or migrates them outside tests.
"""

from __future__ import annotations

import sqlalchemy as sa

metadata = sa.MetaData()
sqlite_bigint = sa.BigInteger().with_variant(sa.Integer(), "sqlite")

chats = sa.Table(
    "Chat",
    metadata,
    sa.Column("id", sa.Text(), primary_key=True, nullable=False),
    sa.Column("remoteJid", sa.Text(), nullable=False),
    sa.Column("instanceId", sa.Text(), nullable=True),
    # Gateway stores `timestamp without time zone` holding UTC wall time.
    sa.Column("createdAt", sa.DateTime(), nullable=False),
)

messages = sa.Table(
    "Message",
    metadata,
    sa.Column("id", sa.Text(), primary_key=True, nullable=False),
    sa.Column("sessionId", sa.Text(), nullable=True),
    sa.Column("instanceId", sa.Text(), nullable=True),
    sa.Column("source", sa.Text(), nullable=True),
    sa.Column("messageType", sa.Text(), nullable=True),
    sa.Column("message", sa.JSON(), nullable=True),
    # Unix epoch seconds.
    sa.Column("messageTimestamp", sqlite_bigint, nullable=False),
)

sa.Index("ix_message_message_timestamp", messages.c.messageTimestamp)
sa.Index("ix_chat_created_at", chats.c.createdAt)
