"""Pydantic schemas for auth requests and the public user projection."""
from __future__ import annotations
from datetime import datetime
from typing import Any
from worklog.schemas.common import CamelModel


class RegisterRequest(CamelModel):
    # Loosely typed on purpose: auth_service owns the presence/format rules.
    name: Any = ""
    email: Any = ""
    password: Any = ""


class LoginRequest(CamelModel):
    email: Any = ""
    password: Any = ""


class UserOut(CamelModel):
    """Public projection: never includes the password hash."""

    id: str
    name: str
    email: str
    created_at: datetime


class UserEnvelope(CamelModel):
    user: UserOut


class AuthResponse(CamelModel):
    message: str
    user: UserOut


class CsrfOut(CamelModel):
    token: str
