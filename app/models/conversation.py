import uuid

from sqlalchemy import Column, DateTime, String
from sqlalchemy.orm import relationship

from app.db.base_class import Base
from app.utils.clock import utcnow


class Conversation(Base):
    __tablename__ = "conversations"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    # Column keeps the Supabase schema name; owner_id is the authorization anchor
    owner_id = Column("user_id", String(36), nullable=False, index=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)

    messages = relationship(
        "Message",
        back_populates="conversation",
        order_by="Message.created_at",
        passive_deletes=True,
    )
