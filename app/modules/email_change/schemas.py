from pydantic import BaseModel, ConfigDict, Field
from typing import Optional, Union


class EmailChangeRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    new_email: str = Field(default="", alias="newEmail")


class EmailChangeRequestResponse(BaseModel):
    success: bool = True


class EmailChangeTokenRequest(BaseModel):
    token: str = ""


class EmailChangeResult(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    success: bool = True
    new_email: str = Field(alias="newEmail")


class EmailChangeClaims(BaseModel):
    """Claims carried by an email-change token once its signature and expiry are checked."""
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    sub: str = Field(min_length=1)
    new_email: str = Field(alias="newEmail", min_length=1)
    exp: Union[int, float]
    iat: Optional[int] = None
    jti: Optional[str] = None
