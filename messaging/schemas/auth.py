from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict


ViewerRole = Literal["admin", "superadmin", "formateur", "apprenant"]


class AuthContext(BaseModel):
    """Read-only identity of the viewer, supplied by the hosting page."""

    model_config = ConfigDict(frozen=True)

    user_id: str
    role: ViewerRole
    display_name: Optional[str] = None

    @property
    def is_superadmin(self) -> bool:
        return self.role == "superadmin"

    @property
    def is_admin(self) -> bool:
        return self.role in ("admin", "superadmin")
