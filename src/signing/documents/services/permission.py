from enum import Enum as PyEnum


class GroupRole(PyEnum):
    ADMIN = "ADMIN"
    MEMBER = "MEMBER"


ROLE_PERMISSIONS = {
    GroupRole.MEMBER: ["upload", "send", "sign"],
    GroupRole.ADMIN: ["upload", "send", "sign", "upload_version", "cancel", "remind", "delete"],
}

# Actions the original uploader may take on their own document regardless of role
UPLOADER_PERMISSIONS = ["upload_version", "cancel", "remind"]


def can_perform_action(user_role, action: str) -> bool:
    return action in ROLE_PERMISSIONS.get(user_role, [])


def can_manage_document(user_role, is_uploader: bool, action: str) -> bool:
    if is_uploader and action in UPLOADER_PERMISSIONS:
        return True
    return can_perform_action(user_role, action)
