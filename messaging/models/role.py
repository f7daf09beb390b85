from typing import TypedDict


class UserRoleDocument(TypedDict, total=False):
    _id: str
    user_id: str
    # "admin", "superadmin", or any non administrative role
    role: str
