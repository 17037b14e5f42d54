"""
Client Schemas.
"""

from datetime import datetime

from pydantic import Field

from crm.backend.schemas.base import CamelModel


class ClientCreate(CamelModel):
    """Either ``companyName`` or ``lastName`` is required (checked by the service)."""

    company_name: str | None = Field(default=None, max_length=255)
    first_name: str | None = Field(default=None, max_length=100)
    last_name: str | None = Field(default=None, max_length=100)
    email: str | None = Field(default=None, max_length=255)
    phone: str | None = Field(default=None, max_length=50)
    address: str | None = None
    postal_code: str | None = Field(default=None, max_length=20)
    city: str | None = Field(default=None, max_length=100)
    country: str | None = Field(default=None, max_length=100)
    siret: str | None = Field(default=None, max_length=20)
    vat_number: str | None = Field(default=None, max_length=30)
    status: str | None = None
    notes: str | None = None


class ClientUpdate(ClientCreate):
    pass


class ClientSummary(CamelModel):
    id: int
    display_name: str
    email: str | None = None


class ClientResponse(CamelModel):
    id: int
    display_name: str
    company_name: str | None
    first_name: str | None
    last_name: str | None
    email: str | None
    phone: str | None
    address: str | None
    postal_code: str | None
    city: str | None
    country: str
    siret: str | None
    vat_number: str | None
    status: str
    notes: str | None
    created_at: datetime
