from typing import Optional
from datetime import datetime
from .utils import now_utc
from sqlmodel import SQLModel, Field
from sqlalchemy import Column, ForeignKey, Integer, CheckConstraint, UniqueConstraint


class User(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    username: str = Field(sa_column_kwargs={"unique": True, "index": True})
    # NULL until the user picks a password on first login (see set-password)
    password_hash: Optional[str] = None
    email: Optional[str] = None
    role: str = Field(default="user")
    active: bool = Field(default=True)
    created_at: datetime | None = Field(default_factory=now_utc)
    last_login: Optional[datetime] = None

    @property
    def is_admin(self) -> bool:
        return self.role == "admin"


class Session(SQLModel, table=True):
    """Server-side login session keyed by the opaque cookie value."""
    id: str = Field(primary_key=True)
    user_id: int = Field(sa_column=Column(Integer, ForeignKey("user.id", ondelete="CASCADE"), nullable=False, index=True))
    expires: datetime = Field(index=True)
    # JSON-encoded {"username", "role"} snapshot taken at login
    data: Optional[str] = None


class Task(SQLModel, table=True):
    __table_args__ = (CheckConstraint('importance >= 1 AND importance <= 10', name='ck_task_importance'),)

    id: Optional[int] = Field(default=None, primary_key=True)
    title: str
    description: Optional[str] = None
    # ISO date or datetime string as supplied by the client
    deadline: Optional[str] = None
    importance: int = Field(default=5)
    category: str = Field(default="Other")
    priority_score: float = Field(default=50.0, index=True)
    is_completed: bool = Field(default=False)
    created_at: datetime | None = Field(default_factory=now_utc)
    # NULL user_id means the task is global (visible to every user)
    user_id: Optional[int] = Field(default=None, sa_column=Column(Integer, ForeignKey("user.id", ondelete="SET NULL"), nullable=True, index=True))


class Subtask(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    task_id: int = Field(sa_column=Column(Integer, ForeignKey("task.id", ondelete="CASCADE"), nullable=False, index=True))
    description: str
    is_completed: bool = Field(default=False)


class Category(SQLModel, table=True):
    """Task category. Rows with user_id NULL are the built-in set."""
    __table_args__ = (UniqueConstraint('name', 'user_id'),)

    id: Optional[int] = Field(default=None, primary_key=True)
    name: str
    icon: str
    user_id: Optional[int] = Field(default=None, sa_column=Column(Integer, ForeignKey("user.id", ondelete="CASCADE"), nullable=True, index=True))


class UserSetting(SQLModel, table=True):
    user_id: int = Field(sa_column=Column(Integer, ForeignKey("user.id", ondelete="CASCADE"), primary_key=True))
    key: str = Field(primary_key=True)
    value: Optional[str] = None
    created_at: datetime | None = Field(default_factory=now_utc)
    updated_at: datetime | None = Field(default_factory=now_utc)
