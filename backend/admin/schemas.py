# ---------------------------------------------------------------------------
# Author  : Kyle <kyle@hacking-linux.com>
# Version : 20261018v1
# ---------------------------------------------------------------------------
"""Pydantic read models for the admin pages."""

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel


class UserRow(BaseModel):
    id: int
    username: str
    email: str
    role: str
    created_at: datetime

    model_config = {"from_attributes": True}


# -- Audit log -------------------------------------------------------------


class AuditLogRow(BaseModel):
    id: int
    admin_username: Optional[str] = None    # resolved from admin_id
    target_username: Optional[str] = None   # resolved from target_user_id
    action: str
    detail: Optional[str] = None
    request_ip: Optional[str] = None
    created_at: datetime

    model_config = {"from_attributes": True}


class AuditLogListResponse(BaseModel):
    logs: List[AuditLogRow]
