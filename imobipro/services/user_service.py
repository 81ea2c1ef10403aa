"""Users, authentication and agent profiles."""

from __future__ import annotations

import logging
from datetime import time
from typing import Any
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from imobipro.auth.company_context import CompanyContext
from imobipro.auth.jwt import REFRESH, TokenPair, create_token_pair, decode_jwt
from imobipro.auth.rbac import can_manage_role
from imobipro.core.config import Config, get_config
from imobipro.core.exceptions import AuthenticationError, AuthorizationError, ConflictError, NotFoundError, ValidationError
from imobipro.core.security import hash_password, verify_password
from imobipro.models.company import Company
from imobipro.models.enums import UserRole
from imobipro.models.user import AgentProfile, User
from imobipro.services.base_service import BaseService
from imobipro.utils.validators import is_valid_email, normalize_email, normalize_phone, normalize_tags, sanitize_text

logger = logging.getLogger(__name__)

PROFILE_FIELDS = frozenset(
    {"timezone", "working_days", "work_start", "work_end", "specializations", "auto_assign_enabled", "max_open_leads", "max_daily_leads"}
)


class UserService(BaseService):
    def __init__(self, db: Session | None = None, config: Config | None = None) -> None:
        super().__init__(db)
        self.config = config or get_config()

    # -- authentication ----------------------------------------------------

    def authenticate(self, email: str, password: str) -> User:
        user = self.db.scalars(select(User).where(User.email == normalize_email(email))).first()
        if user is None or not verify_password(password, user.hashed_password, pepper=self.config.PASSWORD_PEPPER):
            logger.info("auth.login.failed", extra={"event": "auth.login.failed"})
            raise AuthenticationError("Invalid credentials.")
        if not user.is_active:
            raise AuthenticationError("User is inactive.")
        company = self.db.get(Company, user.company_id)
        if company is None or not company.is_active:
            raise AuthenticationError("Company is inactive.")
        return user

    def issue_tokens(self, user: User) -> TokenPair:
        return create_token_pair(
            user_id=user.id,
            company_id=user.company_id,
            role=user.role.value,
            secret=self.config.JWT_SECRET,
            permissions_version=self.config.JWT_PERMISSIONS_VERSION,
            access_ttl_minutes=self.config.JWT_ACCESS_TTL_MINUTES,
            refresh_ttl_days=self.config.JWT_REFRESH_TTL_DAYS,
        )

    def login(self, email: str, password: str) -> TokenPair:
        user = self.authenticate(email, password)
        logger.info("auth.login.succeeded", extra={"event": "auth.login.succeeded", "user_id": user.id})
        return self.issue_tokens(user)

    def refresh(self, refresh_token: str) -> TokenPair:
        """Rotate tokens; role and company are re-read from the database."""
        claims = decode_jwt(refresh_token, secret=self.config.JWT_SECRET, expected_use=REFRESH)
        try:
            user = self.db.get(User, int(claims["sub"]))
        except (KeyError, TypeError, ValueError) as exc:
            raise AuthenticationError("Invalid refresh token claims.") from exc
        if user is None or not user.is_active:
            raise AuthenticationError("User is inactive.")
        return self.issue_tokens(user)

    # -- management --------------------------------------------------------

    def _assert_can_manage(self, context: CompanyContext, target_role: UserRole, target_company_id: int) -> None:
        if not can_manage_role(context.role, target_role.value):
            raise AuthorizationError(f"Role {context.role} cannot manage {target_role.value} users.")
        if not context.is_dev_master and target_company_id != context.company_id:
            raise AuthorizationError("Cross-company access denied.")

    def _load(self, context: CompanyContext, user_id: int) -> User:
        user = self.db.get(User, user_id)
        if user is None or user.company_id != context.company_id:
            raise NotFoundError("User not found.")
        return user

    def create_user(self, context: CompanyContext, data: dict[str, Any]) -> User:
        role: UserRole = data["role"]
        self._assert_can_manage(context, role, context.company_id)
        if self.db.get(Company, context.company_id) is None:
            raise NotFoundError(f"Company not found: {context.company_id}")

        email = normalize_email(data.get("email"))
        if not is_valid_email(email):
            raise ValidationError("email is not a valid address.")
        password = data.get("password") or ""
        if len(password) < 8:
            raise ValidationError("password must have at least 8 characters.")
        if self.db.scalar(select(func.count(User.id)).where(User.email == email)):
            raise ConflictError(f"Email already registered: {email}")

        user = User(
            company_id=context.company_id,
            email=email,
            full_name=sanitize_text(data.get("full_name"), 255),
            phone=normalize_phone(data.get("phone")),
            hashed_password=hash_password(password, pepper=self.config.PASSWORD_PEPPER),
            role=role,
        )
        if not user.full_name:
            raise ValidationError("full_name is required.")
        if role == UserRole.AGENT:
            user.agent_profile = AgentProfile(timezone=self.config.DEFAULT_TIMEZONE)
            self._apply_profile(user.agent_profile, data.get("agent_profile") or {})
        self.db.add(user)
        self.commit()
        self.db.refresh(user)
        logger.info(
            "user.created",
            extra={"event": "user.created", "company_id": context.company_id, "user_id": user.id, "role": role.value},
        )
        return user

    def list_users(self, context: CompanyContext, role: UserRole | None = None, include_inactive: bool = True) -> list[User]:
        stmt = select(User).where(User.company_id == context.company_id)
        if role is not None:
            stmt = stmt.where(User.role == role)
        if not include_inactive:
            stmt = stmt.where(User.is_active.is_(True))
        return list(self.db.scalars(stmt.order_by(User.full_name, User.id)).all())

    def get_user(self, context: CompanyContext, user_id: int) -> User:
        return self._load(context, user_id)

    def update_user(self, context: CompanyContext, user_id: int, changes: dict[str, Any]) -> User:
        user = self._load(context, user_id)
        self._assert_can_manage(context, user.role, user.company_id)
        if changes.get("full_name") is not None:
            user.full_name = sanitize_text(changes["full_name"], 255)
        if "phone" in changes:
            user.phone = normalize_phone(changes["phone"])
        if changes.get("password"):
            if len(changes["password"]) < 8:
                raise ValidationError("password must have at least 8 characters.")
            user.hashed_password = hash_password(changes["password"], pepper=self.config.PASSWORD_PEPPER)
        if changes.get("is_active") is not None:
            user.is_active = bool(changes["is_active"])
        self.commit()
        self.db.refresh(user)
        return user

    def set_active(self, context: CompanyContext, user_id: int, active: bool) -> User:
        if user_id == context.user_id and not active:
            raise ValidationError("Users cannot deactivate themselves.")
        user = self.update_user(context, user_id, {"is_active": active})
        logger.info(
            "user.activation_changed",
            extra={"event": "user.activation_changed", "user_id": user.id, "is_active": user.is_active},
        )
        return user

    # -- agent profiles ----------------------------------------------------

    def _apply_profile(self, profile: AgentProfile, data: dict[str, Any]) -> None:
        unknown = set(data) - PROFILE_FIELDS
        if unknown:
            raise ValidationError(f"Unknown agent profile fields: {', '.join(sorted(unknown))}")
        if data.get("timezone") is not None:
            try:
                ZoneInfo(data["timezone"])
            except (ZoneInfoNotFoundError, ValueError) as exc:
                raise ValidationError(f"Unknown timezone: {data['timezone']}") from exc
            profile.timezone = data["timezone"]
        if data.get("working_days") is not None:
            days = sorted({int(day) for day in data["working_days"]})
            if any(day < 0 or day > 6 for day in days):
                raise ValidationError("working_days must be weekday numbers 0 (Monday) to 6 (Sunday).")
            profile.working_days = days
        for key in ("work_start", "work_end"):
            if data.get(key) is not None:
                value = data[key]
                try:
                    profile_value = value if isinstance(value, time) else time.fromisoformat(str(value))
                except ValueError as exc:
                    raise ValidationError(f"{key} must be HH:MM.") from exc
                setattr(profile, key, profile_value)
        if data.get("specializations") is not None:
            profile.specializations = normalize_tags(data["specializations"])
        if data.get("auto_assign_enabled") is not None:
            profile.auto_assign_enabled = bool(data["auto_assign_enabled"])
        for key in ("max_open_leads", "max_daily_leads"):
            if key in data:
                if data[key] is not None and int(data[key]) < 1:
                    raise ValidationError(f"{key} must be >= 1.")
                setattr(profile, key, data[key])

    def upsert_agent_profile(self, context: CompanyContext, user_id: int, data: dict[str, Any]) -> AgentProfile:
        user = self._load(context, user_id)
        if user.role != UserRole.AGENT:
            raise ValidationError("Only agents have assignment profiles.")
        if user.id != context.user_id:
            self._assert_can_manage(context, user.role, user.company_id)
        profile = user.agent_profile
        if profile is None:
            profile = AgentProfile(user_id=user.id, timezone=self.config.DEFAULT_TIMEZONE)
            user.agent_profile = profile
        self._apply_profile(profile, data)
        self.commit()
        self.db.refresh(profile)
        return profile
