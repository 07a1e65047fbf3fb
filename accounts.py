import logging
from datetime import datetime
from typing import Any, Dict, Mapping

from pydantic import TypeAdapter, ValidationError as PydanticValidationError

from config import Settings
from errors import DuplicateIdentity, Unauthenticated, ValidationError
from repository import AccountRepository
from schemas import LoginRequest, Principal, RegisterRequest
from security import hash_password, issue_token, verify_password

logger = logging.getLogger(__name__)

_registration = TypeAdapter(RegisterRequest)


def serialize_account(doc: Dict[str, Any]) -> Dict[str, Any]:
    doc = dict(doc)
    _id = doc.pop("_id", None)
    if _id is not None:
        doc["id"] = str(_id)
    doc.pop("password_hash", None)
    for k, v in list(doc.items()):
        if isinstance(v, datetime):
            doc[k] = v.isoformat()
    return doc


class AccountService:
    """Registration and login for NGO and Canteen accounts."""

    def __init__(self, accounts: AccountRepository, settings: Settings):
        self.accounts = accounts
        self.settings = settings

    def register(self, payload: Mapping[str, Any]) -> Dict[str, Any]:
        try:
            registration = _registration.validate_python(payload)
        except PydanticValidationError as e:
            raise ValidationError.from_pydantic(e)

        email = registration.email.lower()
        if self.accounts.get_by_email(email):
            raise DuplicateIdentity()

        doc = registration.model_dump(exclude={"password"})
        doc["email"] = email
        doc["password_hash"] = hash_password(registration.password, self.settings.bcrypt_rounds)
        account_id = self.accounts.create(doc)
        doc["_id"] = account_id
        logger.info(f"Registered {registration.account_type} account {account_id}")

        principal = Principal(id=account_id, role=registration.account_type)
        return {
            "message": "Registration successful!",
            "token": issue_token(self.settings, principal),
            "account": serialize_account(doc),
        }

    def login(self, req: LoginRequest) -> Dict[str, Any]:
        account = self.accounts.get_by_email(req.email.lower())
        if not account or not verify_password(req.password, account.get("password_hash", "")):
            logger.warning("Login rejected: invalid credentials")
            raise Unauthenticated("Invalid credentials")

        principal = Principal(id=str(account["_id"]), role=account["account_type"])
        return {
            "message": "Login successful!",
            "token": issue_token(self.settings, principal),
            "account": serialize_account(account),
        }
