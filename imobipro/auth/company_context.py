"""Company context extraction and row-level access enforcement."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from sqlalchemy import Select

from imobipro.core.exceptions import AuthenticationError, AuthorizationError, NotFoundError
from imobipro.models.contact import Contact
from imobipro.models.enums import UserRole

SYSTEM_ROLE = "system"


@dataclass(frozen=True)
class CompanyContext:
    company_id: int
    user_id: int | None
    role: str
    permissions_version: int = 1

    @property
    def is_agent(self) -> bool:
        return self.role == UserRole.AGENT.value

    @property
    def is_dev_master(self) -> bool:
        return self.role == UserRole.DEV_MASTER.value


def from_claims(claims: dict[str, Any], header_company_id: int | None = None) -> CompanyContext:
    """Build company context from JWT claims and the optional X-Company-Id override."""
    try:
        claim_company_id = int(claims["company_id"])
        user_id = int(claims["sub"])
        role = str(claims["role"]).lower()
    except (KeyError, TypeError, ValueError) as exc:
        raise AuthenticationError("Token claims are missing company/user context.") from exc

    resolved_company = claim_company_id
    if header_company_id is not None and int(header_company_id) != claim_company_id:
        if role != UserRole.DEV_MASTER.value:
            raise AuthorizationError("Company override is dev_master-only.")
        resolved_company = int(header_company_id)

    return CompanyContext(
        company_id=resolved_company,
        user_id=user_id,
        role=role,
        permissions_version=int(claims.get("permissions_version", 1)),
    )


def system_context(company_id: int) -> CompanyContext:
    """Context for unattended callers such as webhooks and scheduled tasks."""
    return CompanyContext(company_id=company_id, user_id=None, role=SYSTEM_ROLE)


def enforce_company_match(entity_company_id: int, context: CompanyContext) -> None:
    """Ensure entity access stays inside the context company."""
    if int(entity_company_id) != int(context.company_id):
        raise AuthorizationError("Cross-company access denied.")


def scope_contacts(stmt: Select, context: CompanyContext) -> Select:
    """Restrict a contact query to rows visible to the caller."""
    stmt = stmt.where(Contact.company_id == context.company_id)
    if context.is_agent:
        stmt = stmt.where(Contact.agent_id == context.user_id)
    return stmt


def enforce_contact_access(contact: Contact | None, context: CompanyContext) -> Contact:
    """Return the contact when visible, else raise NotFoundError.

    Rows of other companies and, for agents, rows owned by other agents are
    reported as missing so that ids do not leak.
    """
    if contact is None or int(contact.company_id) != int(context.company_id):
        raise NotFoundError("Contact not found.")
    if context.is_agent and contact.agent_id != context.user_id:
        raise NotFoundError("Contact not found.")
    return contact
