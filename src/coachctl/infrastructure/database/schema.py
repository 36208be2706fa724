"""SQLAlchemy Core table definitions for the coachctl database.

One table per aggregate record type plus the audit log and the
sequential ID counters. JSON-valued columns are stored as TEXT.
"""

from __future__ import annotations

from sqlalchemy import (
    Column,
    ForeignKey,
    Index,
    Integer,
    MetaData,
    Table,
    Text,
    UniqueConstraint,
)

metadata = MetaData()

tasks = Table(
    "tasks",
    metadata,
    Column("id", Text, primary_key=True),  # TASK-NNNN
    Column("title", Text, nullable=False),
    Column("contact_id", Text, nullable=False),
    Column("status", Text, nullable=False, default="open", server_default="open"),
    Column("due_at", Text),
    Column("created", Text, nullable=False),
    Column("modified", Text, nullable=False),
)

contact_notes = Table(
    "contact_notes",
    metadata,
    Column("id", Text, primary_key=True),  # NOTE-NNNN
    Column("content", Text, nullable=False),
    Column("target_contact_id", Text, nullable=False),
    Column("author_contact_id", Text, nullable=False),
    Column("created", Text, nullable=False),
)

interactions = Table(
    "interactions",
    metadata,
    Column("id", Text, primary_key=True),  # INT-NNNN
    Column("contact_id", Text, nullable=False),
    Column("author_contact_id", Text, nullable=False),
    Column("kind", Text, nullable=False, default="other", server_default="other"),
    Column("summary", Text, nullable=False),
    Column("created", Text, nullable=False),
)

wants = Table(
    "wants",
    metadata,
    Column("id", Text, primary_key=True),  # WANT-NNNN
    Column("contact_id", Text, nullable=False),  # owner, always Contact Zero
    Column("title", Text, nullable=False),
    Column("reason", Text, nullable=False, default="", server_default=""),
    Column("deadline", Text),
    Column("status", Text, nullable=False, default="not_started", server_default="not_started"),
    Column("origin_type", Text, nullable=False, default="want", server_default="want"),
    Column("is_valid_want", Integer, nullable=False, default=1, server_default="1"),
    Column("validation_reason", Text, nullable=False, default="", server_default=""),
    Column("is_direct", Integer, nullable=False, default=1, server_default="1"),
    Column("failing_reason", Text),
    Column("primary_contact_id", Text),
    Column("created", Text, nullable=False),
    Column("modified", Text, nullable=False),
)

want_steps = Table(
    "want_steps",
    metadata,
    Column("id", Text, primary_key=True),  # STEP-NNNN
    Column("want_id", Text, ForeignKey("wants.id"), nullable=False),
    Column("title", Text, nullable=False),
    Column("deadline", Text),
    Column("status", Text, nullable=False, default="not_started", server_default="not_started"),
    Column("position", Integer, nullable=False),
    Column("created", Text, nullable=False),
)

want_metric_types = Table(
    "want_metric_types",
    metadata,
    Column("want_id", Text, ForeignKey("wants.id"), nullable=False),
    Column("name", Text, nullable=False),
    Column("position", Integer, nullable=False),
    UniqueConstraint("want_id", "name"),
)

want_metrics = Table(
    "want_metrics",
    metadata,
    Column("want_id", Text, ForeignKey("wants.id"), nullable=False),
    Column("date", Text, nullable=False),  # YYYY-MM-DD
    Column("name", Text, nullable=False),
    Column("value", Text),  # JSON scalar
    UniqueConstraint("want_id", "date", "name"),
)

want_iterations = Table(
    "want_iterations",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("want_id", Text, ForeignKey("wants.id"), nullable=False),
    Column("date", Text, nullable=False),
    Column("feedback", Text, nullable=False),
    Column("source", Text, nullable=False),
)

scopes = Table(
    "scopes",
    metadata,
    Column("want_id", Text, ForeignKey("wants.id"), primary_key=True),
    Column("objective", Text, nullable=False),
    Column("is_inert", Integer, nullable=False, default=1, server_default="1"),
    Column("last_activity", Text),
    Column("created", Text, nullable=False),
    Column("modified", Text, nullable=False),
)

scope_doctrine_notes = Table(
    "scope_doctrine_notes",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("want_id", Text, ForeignKey("scopes.want_id"), nullable=False),
    Column("note", Text, nullable=False),
    Column("created", Text, nullable=False),
)

scope_entries = Table(
    "scope_entries",
    metadata,
    Column("id", Text, primary_key=True),  # ITER-NNNN
    Column("want_id", Text, ForeignKey("scopes.want_id"), nullable=False),
    Column("date", Text, nullable=False),
    Column("action", Text, nullable=False),
    Column("feedback", Text, nullable=False),
    Column("consequence", Text, nullable=False, default="", server_default=""),
    Column("source", Text, nullable=False),
    Column("related_step_id", Text),
    Column("related_metric_name", Text),
)

audit_log = Table(
    "audit_log",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("session_id", Text, nullable=False),
    Column("timestamp", Text, nullable=False),
    Column("event_type", Text, nullable=False),
    Column("aggregate", Text, nullable=False),
    Column("target_id", Text),
    Column("payload", Text, nullable=False),  # JSON object
)

id_counters = Table(
    "id_counters",
    metadata,
    Column("type_prefix", Text, primary_key=True),
    Column("next_value", Integer, nullable=False, default=1, server_default="1"),
)

# ---------------------------------------------------------------------------
# Indexes for frequently filtered columns
# ---------------------------------------------------------------------------

Index("ix_tasks_contact", tasks.c.contact_id)
Index("ix_notes_target", contact_notes.c.target_contact_id)
Index("ix_interactions_contact", interactions.c.contact_id)
Index("ix_wants_status", wants.c.status)
Index("ix_want_steps_want", want_steps.c.want_id)
Index("ix_want_metrics_want", want_metrics.c.want_id)
Index("ix_scope_entries_want", scope_entries.c.want_id)
Index("ix_audit_log_session", audit_log.c.session_id)
