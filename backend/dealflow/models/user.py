from typing import Annotated, Optional, Literal, Union
from pydantic import BaseModel, Field, TypeAdapter


class _IdentityBase(BaseModel):
    id: str
    email: Optional[str] = None
    display_name: Optional[str] = None


class AthleteIdentity(_IdentityBase):
    """Authenticated student-athlete"""
    role: Literal["athlete"] = "athlete"


class BrandIdentity(_IdentityBase):
    """Authenticated brand user"""
    role: Literal["brand"] = "brand"
    company_name: Optional[str] = None


class DirectorIdentity(_IdentityBase):
    """Authenticated athletic director"""
    role: Literal["director"] = "director"
    school_id: Optional[str] = None


class AdminIdentity(_IdentityBase):
    """Platform administrator"""
    role: Literal["admin"] = "admin"


Identity = Union[AthleteIdentity, BrandIdentity, DirectorIdentity, AdminIdentity]

CurrentUser = Annotated[Identity, Field(discriminator="role")]

_current_user_adapter = TypeAdapter(CurrentUser)


def identity_from_claims(claims: dict) -> CurrentUser:
    """Build the tagged identity from decoded token claims.

    Raises pydantic.ValidationError for an unknown or missing role.
    """
    return _current_user_adapter.validate_python({
        "id": claims.get("uid") or claims.get("user_id") or claims.get("id"),
        "email": claims.get("email"),
        "display_name": claims.get("name") or claims.get("display_name"),
        "role": claims.get("role"),
        "company_name": claims.get("company_name"),
        "school_id": claims.get("school_id"),
    })


class PartyContact(BaseModel):
    """Name and email used to seat a user on a contract"""
    user_id: Optional[str] = None
    name: Optional[str] = None
    email: Optional[str] = None
    title: Optional[str] = None
    guardian: Optional["PartyContact"] = None


PartyContact.model_rebuild()
