"""Property listings and contact/property matching."""

from __future__ import annotations

import logging
from typing import Any

from sqlalchemy import func, or_, select

from imobipro.auth.company_context import CompanyContext, enforce_contact_access, scope_contacts
from imobipro.core.exceptions import ConflictError, NotFoundError, ValidationError
from imobipro.models.contact import Contact
from imobipro.models.enums import CLOSED_LEAD_STAGES, PropertyStatus, PropertyType, UserRole
from imobipro.models.property import Property
from imobipro.models.user import User
from imobipro.services.base_service import BaseService
from imobipro.utils.validators import sanitize_text

logger = logging.getLogger(__name__)

PRICE_TOLERANCE = 0.20
PROPERTY_FIELDS = frozenset(
    {
        "code",
        "title",
        "description",
        "property_type",
        "status",
        "price",
        "city",
        "neighborhood",
        "address",
        "bedrooms",
        "bathrooms",
        "area_m2",
        "agent_id",
    }
)


def price_window(reference: int | float) -> tuple[float, float]:
    return reference * (1 - PRICE_TOLERANCE), reference * (1 + PRICE_TOLERANCE)


def _same_place(location: str | None, prop: Property) -> bool:
    if not location:
        return True
    wanted = location.strip().lower()
    return any(value and value.strip().lower() == wanted for value in (prop.city, prop.neighborhood))


def is_match(contact: Contact, prop: Property) -> bool:
    """Type, location and ±20% price rule; attributes a side lacks do not filter."""
    if prop.status != PropertyStatus.AVAILABLE:
        return False
    if contact.property_type is not None and prop.property_type != contact.property_type:
        return False
    if not _same_place(contact.preferred_location, prop):
        return False
    if contact.budget:
        low, high = price_window(contact.budget)
        if not low <= prop.price <= high:
            return False
    return True


class PropertyService(BaseService):
    def _load(self, context: CompanyContext, property_id: int) -> Property:
        prop = self.db.get(Property, property_id)
        if prop is None or prop.company_id != context.company_id:
            raise NotFoundError("Property not found.")
        return prop

    def _clean(self, context: CompanyContext, data: dict[str, Any]) -> dict[str, Any]:
        cleaned = {key: value for key, value in data.items() if key in PROPERTY_FIELDS}
        for key, limit in (("code", 60), ("title", 255), ("city", 120), ("neighborhood", 120), ("address", 255)):
            if key in cleaned and cleaned[key] is not None:
                cleaned[key] = sanitize_text(cleaned[key], limit) or None
        if "description" in cleaned:
            cleaned["description"] = sanitize_text(cleaned["description"], 10000) or None
        if "price" in cleaned and cleaned["price"] is not None and cleaned["price"] <= 0:
            raise ValidationError("price must be positive.")
        agent_id = cleaned.get("agent_id")
        if agent_id is not None:
            agent = self.db.get(User, agent_id)
            if agent is None or agent.company_id != context.company_id or agent.role != UserRole.AGENT:
                raise ValidationError("agent_id must reference an agent of this company.")
        return cleaned

    def _code_taken(self, company_id: int, code: str, exclude_id: int | None = None) -> bool:
        stmt = select(Property.id).where(Property.company_id == company_id, Property.code == code)
        if exclude_id is not None:
            stmt = stmt.where(Property.id != exclude_id)
        return self.db.scalar(stmt.limit(1)) is not None

    def create_property(self, context: CompanyContext, data: dict[str, Any]) -> Property:
        cleaned = self._clean(context, data)
        for required in ("code", "title", "property_type", "price"):
            if cleaned.get(required) in (None, ""):
                raise ValidationError(f"{required} is required.")
        if self._code_taken(context.company_id, cleaned["code"]):
            raise ConflictError(f"Property code already in use: {cleaned['code']}")

        prop = Property(company_id=context.company_id, **cleaned)
        self.db.add(prop)
        self.commit()
        self.db.refresh(prop)
        logger.info(
            "property.created",
            extra={"event": "property.created", "company_id": context.company_id, "property_id": prop.id},
        )
        return prop

    def get_property(self, context: CompanyContext, property_id: int) -> Property:
        return self._load(context, property_id)

    def list_properties(
        self,
        context: CompanyContext,
        status: PropertyStatus | None = None,
        property_type: PropertyType | None = None,
        city: str | None = None,
        min_price: int | None = None,
        max_price: int | None = None,
        min_bedrooms: int | None = None,
        agent_id: int | None = None,
        search: str | None = None,
        limit: int = 50,
        offset: int = 0,
    ) -> tuple[list[Property], int]:
        stmt = select(Property).where(Property.company_id == context.company_id)
        if status is not None:
            stmt = stmt.where(Property.status == status)
        if property_type is not None:
            stmt = stmt.where(Property.property_type == property_type)
        if city:
            stmt = stmt.where(func.lower(Property.city) == city.strip().lower())
        if min_price is not None:
            stmt = stmt.where(Property.price >= min_price)
        if max_price is not None:
            stmt = stmt.where(Property.price <= max_price)
        if min_bedrooms is not None:
            stmt = stmt.where(Property.bedrooms >= min_bedrooms)
        if agent_id is not None:
            stmt = stmt.where(Property.agent_id == agent_id)
        term = sanitize_text(search, 100).lower()
        if term:
            pattern = f"%{term}%"
            stmt = stmt.where(
                or_(
                    func.lower(Property.title).like(pattern),
                    func.lower(Property.code).like(pattern),
                    func.lower(Property.neighborhood).like(pattern),
                )
            )
        total = self.db.scalar(select(func.count()).select_from(stmt.subquery())) or 0
        items = self.db.scalars(stmt.order_by(Property.created_at.desc(), Property.id.desc()).limit(limit).offset(offset)).all()
        return list(items), int(total)

    def update_property(self, context: CompanyContext, property_id: int, changes: dict[str, Any]) -> Property:
        prop = self._load(context, property_id)
        cleaned = self._clean(context, changes)
        if "code" in cleaned and cleaned["code"] != prop.code and self._code_taken(context.company_id, cleaned["code"], prop.id):
            raise ConflictError(f"Property code already in use: {cleaned['code']}")
        for key, value in cleaned.items():
            setattr(prop, key, value)
        self.commit()
        self.db.refresh(prop)
        return prop

    def delete_property(self, context: CompanyContext, property_id: int) -> None:
        prop = self._load(context, property_id)
        self.db.delete(prop)
        self.commit()

    def match_properties_for_contact(self, context: CompanyContext, contact_id: int, limit: int = 20) -> list[Property]:
        contact = enforce_contact_access(self.db.get(Contact, contact_id), context)
        stmt = select(Property).where(
            Property.company_id == context.company_id,
            Property.status == PropertyStatus.AVAILABLE,
        )
        if contact.property_type is not None:
            stmt = stmt.where(Property.property_type == contact.property_type)
        if contact.budget:
            low, high = price_window(contact.budget)
            stmt = stmt.where(Property.price >= low, Property.price <= high)
        candidates = self.db.scalars(stmt.order_by(Property.price.asc(), Property.id.asc())).all()
        matches = [prop for prop in candidates if is_match(contact, prop)]
        if contact.budget:
            matches.sort(key=lambda prop: (abs(prop.price - contact.budget), prop.id))
        return matches[:limit]

    def match_contacts_for_property(self, context: CompanyContext, property_id: int, limit: int = 50) -> list[Contact]:
        """Open contacts (visible to the caller) whose wishes fit this listing."""
        prop = self._load(context, property_id)
        if prop.status != PropertyStatus.AVAILABLE:
            return []
        stmt = scope_contacts(select(Contact), context).where(Contact.stage.not_in(list(CLOSED_LEAD_STAGES)))
        contacts = self.db.scalars(stmt.order_by(Contact.lead_score.desc(), Contact.id.asc())).all()
        return [contact for contact in contacts if is_match(contact, prop)][:limit]
