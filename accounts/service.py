import secrets
import string
from datetime import datetime, timezone
from decimal import Decimal
from typing import Optional
from uuid import UUID, uuid4

import structlog

from core.errors import DuplicateError, NotFoundError
from core.storage import InMemoryStorage
from referrals.service import ReferralService

from .models import RegisterUserRequest, User, UserProfile

logger = structlog.get_logger()

REFERRAL_CODE_ALPHABET = string.ascii_letters + string.digits
MAX_CODE_ATTEMPTS = 20


class AccountService:
    def __init__(
        self,
        storage: InMemoryStorage,
        referrals: ReferralService,
        referral_code_length: int = 8,
    ):
        self.storage = storage
        self.referrals = referrals
        self.referral_code_length = referral_code_length

    def register_user(self, request: RegisterUserRequest) -> User:
        user_id = uuid4()
        with self.storage.atomic():
            if request.email in self.storage.email_index:
                raise DuplicateError("User already registered.")

            user_data = {
                "id": user_id,
                "name": request.name,
                "email": request.email,
                "password_hash": request.password_hash,
                "role": request.role,
                "balance": Decimal("0"),
                "referral_code": self._generate_referral_code(),
                "referred_by": None,
                "referrals": [],
                "referral_earnings": Decimal("0"),
                "withdrawals": [],
                "created_at": datetime.now(timezone.utc),
            }
            self.storage.users[user_id] = user_data
            self.storage.email_index[request.email] = user_id
            self.storage.referral_code_index[user_data["referral_code"]] = user_id

            if request.referred_by:
                referral = self.referrals.register_edge(request.referred_by, user_id)
                if referral is None:
                    logger.info("Unknown referral code dropped at registration", referred_by=request.referred_by)

        logger.info("User registered", user_id=str(user_id), referred=bool(self.storage.users[user_id]["referred_by"]))
        return self.get_user(user_id)

    def get_user(self, user_id: UUID) -> User:
        with self.storage.atomic():
            user_data = self.storage.users.get(user_id)
            if not user_data:
                raise NotFoundError(f"User {user_id} not found")
            return User(**user_data)

    def get_user_by_email(self, email: str) -> User:
        with self.storage.atomic():
            user_id = self.storage.email_index.get(email.strip().lower())
            if user_id is None:
                raise NotFoundError(f"User {email} not found")
            return self.get_user(user_id)

    def get_user_by_referral_code(self, referral_code: str) -> Optional[User]:
        with self.storage.atomic():
            user_id = self.storage.referral_code_index.get(referral_code)
            return self.get_user(user_id) if user_id else None

    def get_profile(self, user_id: UUID) -> UserProfile:
        user = self.get_user(user_id)
        return UserProfile(
            id=user.id,
            name=user.name,
            email=user.email,
            role=user.role,
            balance=user.balance,
            referral_code=user.referral_code,
            referred_count=len(user.referrals),
            referral_earnings=user.referral_earnings,
        )

    def _generate_referral_code(self) -> str:
        for _ in range(MAX_CODE_ATTEMPTS):
            code = "".join(secrets.choice(REFERRAL_CODE_ALPHABET) for _ in range(self.referral_code_length))
            if code not in self.storage.referral_code_index:
                return code
        raise RuntimeError("Could not generate a unique referral code")
