"""
models/group_member.py — Which people belong to which group.

Rows are added and removed through group_service; a person sits in a given
group at most once.
"""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import DateTime, ForeignKey, UniqueConstraint, func
from sqlalchemy.orm import Mapped, mapped_column, relationship

from splitbook.app.extensions import db


class GroupMember(db.Model):
    __tablename__ = "group_members"
    __table_args__ = (
        UniqueConstraint("group_id", "person_id", name="uq_group_members_group_person"),
    )

    id: Mapped[int] = mapped_column(primary_key=True)

    # Deleting a group takes its membership rows with it.
    group_id: Mapped[int] = mapped_column(
        ForeignKey("groups.id", ondelete="CASCADE"), index=True,
    )
    # People are deactivated, never deleted, so RESTRICT never fires in practice.
    person_id: Mapped[int] = mapped_column(
        ForeignKey("people.id", ondelete="RESTRICT"), index=True,
    )

    joined_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(),
    )

    group: Mapped["Group"] = relationship("Group", back_populates="memberships")  # noqa: F821
    person: Mapped["Person"] = relationship("Person")  # noqa: F821

    def __repr__(self) -> str:  # pragma: no cover
        return f"<GroupMember group={self.group_id} person={self.person_id}>"
