"""Authenticated session model."""

from typing import Optional

from pydantic import BaseModel, Field


class UserSession(BaseModel):
    """
    The signed-in principal.

    user_id scopes every row read and write.
    """

    user_id: str = Field(..., min_length=1)
    email: str
    id_token: str = Field(default="", repr=False)
    refresh_token: str = Field(default="", repr=False)
    display_name: Optional[str] = None

    @property
    def initial(self) -> str:
        """First letter shown in the account badge."""
        return (self.email[:1] or "U").upper()
