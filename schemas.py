from pydantic import BaseModel, ConfigDict, Field, EmailStr, field_validator
from typing import Optional, Literal, List, Union, Dict, Any, Annotated
from datetime import datetime, timezone

# FoodShare Schemas
# Each class name lowercased becomes the collection name in MongoDB

Role = Literal['NGO', 'Canteen']
PostStatus = Literal['open', 'claimed', 'completed', 'expired']

ROLE_NGO = 'NGO'
ROLE_CANTEEN = 'Canteen'

STATUS_OPEN = 'open'
STATUS_CLAIMED = 'claimed'
STATUS_COMPLETED = 'completed'
STATUS_EXPIRED = 'expired'
POST_STATUSES = (STATUS_OPEN, STATUS_CLAIMED, STATUS_COMPLETED, STATUS_EXPIRED)


def utcnow() -> datetime:
    """Current time as a naive UTC datetime, the form pymongo hands back."""
    return to_naive_utc(datetime.now(timezone.utc))


def to_naive_utc(value: datetime) -> datetime:
    """Naive UTC truncated to milliseconds, the precision BSON stores."""
    if value.tzinfo is not None:
        value = value.astimezone(timezone.utc).replace(tzinfo=None)
    return value.replace(microsecond=value.microsecond // 1000 * 1000)


############################
# Accounts
############################

class AccountBase(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    contact_person: str = Field(..., min_length=1, description="Contact person")
    phone_number: str = Field(..., min_length=1, description="Phone number")
    address: str = Field(..., min_length=1, description="Street address")
    city: str = Field(..., min_length=1, description="City")
    state: str = Field(..., min_length=1, description="State or province")
    country: str = Field(..., min_length=1, description="Country")
    email: EmailStr = Field(..., description="Email address (unique)")


class NGOProfile(AccountBase):
    """
    accounts collection, NGO variant
    Collection: "account"
    """
    account_type: Literal['NGO'] = Field(..., description="Account role tag")
    org_name: str = Field(..., min_length=1, description="Organization name")
    reg_number: str = Field(..., min_length=1, description="Registration number")
    about: Optional[str] = Field(None, description="About the organization")


class CanteenProfile(AccountBase):
    """
    accounts collection, Canteen variant
    Collection: "account"
    """
    account_type: Literal['Canteen'] = Field(..., description="Account role tag")
    canteen_name: str = Field(..., min_length=1, description="Canteen name")
    surplus_capacity: int = Field(..., gt=0, description="Typical surplus portions per day")
    operational_hours: str = Field(..., min_length=1, description="Operational hours")


class NGORegistration(NGOProfile):
    password: str = Field(..., min_length=6, description="Plain password, hashed before storage")


class CanteenRegistration(CanteenProfile):
    password: str = Field(..., min_length=6, description="Plain password, hashed before storage")


RegisterRequest = Annotated[Union[NGORegistration, CanteenRegistration], Field(discriminator='account_type')]


class LoginRequest(BaseModel):
    email: EmailStr
    password: str


class Principal(BaseModel):
    """Authenticated caller derived from a bearer token."""
    model_config = ConfigDict(frozen=True)

    id: str
    role: Role


############################
# Posts
############################

class Claim(BaseModel):
    """
    Embedded claim record (not a collection)
    """
    ngo_id: str = Field(..., description="Claiming NGO account id")
    ngo_name: str = Field(..., description="NGO name at time of claim")
    phone: str = Field(..., description="NGO contact phone")
    time: datetime = Field(..., description="Claim time (UTC)")


class Post(BaseModel):
    """
    posts collection
    Collection: "post"
    """
    id: Optional[str] = Field(None, description="Document id as string")
    canteen_id: str = Field(..., description="Owning canteen account id")
    canteen_name: str = Field(..., description="Canteen name at time of posting")
    items: str = Field(..., description="Food items on offer")
    portions: int = Field(..., gt=0, description="Number of portions")
    ready_by: datetime = Field(..., description="Ready-by time (UTC)")
    location: str = Field(..., description="Pickup location")
    dietary: List[str] = Field(default_factory=list, description="Dietary tags")
    contact: str = Field(..., description="Canteen contact")
    notes: Optional[str] = Field(None, description="Extra notes")
    claimed_by: Optional[Claim] = Field(None, description="Claim record")
    status: PostStatus = Field(STATUS_OPEN, description="Post status")
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @classmethod
    def from_document(cls, doc: Dict[str, Any]) -> "Post":
        data = dict(doc)
        _id = data.pop("_id", None)
        if _id is not None:
            data["id"] = str(_id)
        return cls.model_validate(data)


class PostCreateRequest(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    canteen_name: str = Field(..., min_length=1)
    items: str = Field(..., min_length=1)
    portions: int = Field(..., gt=0)
    ready_by: datetime
    location: str = Field(..., min_length=1)
    dietary: List[str] = Field(default_factory=list)
    contact: str = Field(..., min_length=1)
    notes: Optional[str] = None

    @field_validator("ready_by")
    @classmethod
    def _ready_by_utc(cls, v: datetime) -> datetime:
        return to_naive_utc(v)

    @field_validator("dietary")
    @classmethod
    def _clean_tags(cls, v: List[str]) -> List[str]:
        tags: List[str] = []
        for tag in v:
            tag = tag.strip()
            if tag and tag not in tags:
                tags.append(tag)
        return tags

    @field_validator("notes")
    @classmethod
    def _blank_notes(cls, v: Optional[str]) -> Optional[str]:
        return v or None


class ClaimRequest(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    ngo_name: str = Field(..., min_length=1)
    phone: str = Field(..., min_length=1)
