from __future__ import annotations

from sqlalchemy import Boolean, Column, DateTime, ForeignKey, String, Text
from sqlalchemy.orm import DeclarativeBase


class Base(DeclarativeBase):
    pass


class UserModel(Base):
    __tablename__ = "users"

    id = Column(String, primary_key=True)
    email = Column(String, nullable=False)
    name = Column(String, nullable=False)
    created_at = Column(DateTime(timezone=True))


class FormModel(Base):
    __tablename__ = "forms"

    id = Column(String, primary_key=True)
    title = Column(String, nullable=False)
    description = Column(Text, nullable=True)
    owner_id = Column(String, ForeignKey("users.id", ondelete="CASCADE"), index=True)
    fields_json = Column(Text, default="[]")
    settings_json = Column(Text)
    is_published = Column(Boolean, default=False)
    created_at = Column(DateTime(timezone=True))
    updated_at = Column(DateTime(timezone=True))


class ResponseModel(Base):
    __tablename__ = "form_responses"

    id = Column(String, primary_key=True)
    form_id = Column(String, ForeignKey("forms.id", ondelete="CASCADE"), index=True)
    user_id = Column(String, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    answers_json = Column(Text, default="{}")
    metadata_json = Column(Text)
    submitted_at = Column(DateTime(timezone=True))
