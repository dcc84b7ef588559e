"""
User Model.

Pydantic model for the account record returned by the remote API.
The API speaks camelCase (``companyName``, ``createdAt``); Python code
uses snake_case attribute names and serialises back with aliases.
"""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from pydantic import BaseModel
from pydantic.alias_generators import to_camel

from jobportal.models.enums import UserRole


class User(BaseModel):
    """Represents an authenticated marketplace account.

    Unknown fields sent by the server (avatar URLs, resume links, ...) are
    kept as extras so a stored record is the whole server record, not a
    lossy projection of it.
    """

    id: str
    email: str
    name: str = ""
    role: UserRole
    company_name: Optional[str] = None
    phone: Optional[str] = None
    skills: Optional[list[str]] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    model_config = {
        "from_attributes": True,
        "populate_by_name": True,
        "alias_generator": to_camel,
        "extra": "allow",
        "coerce_numbers_to_str": True,
    }

    @property
    def has_company_name(self) -> bool:
        """``True`` when ``company_name`` holds non-blank text."""
        return bool(self.company_name and self.company_name.strip())

    def to_wire(self) -> dict[str, object]:
        """Serialise with camelCase keys, as the API and the store expect."""
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)
