from uuid import UUID

from signing.documents.exceptions import UnauthorizedError
from signing.documents.models.document import Document
from signing.documents.services.collaborators import GroupDirectory
from signing.documents.services.permission import GroupRole, can_manage_document


def require_member(directory: GroupDirectory, group_id: UUID, user_id: UUID) -> None:
    if not directory.is_member(group_id, user_id):
        raise UnauthorizedError("You are not a member of this group")


def require_document_action(directory: GroupDirectory, document: Document, user_id: UUID,
                            action: str) -> GroupRole:
    """
    Checks that the user belongs to the document's group and that their
    role (or being the uploader) allows the action. Returns the role.
    """
    role = directory.role_of(document.group_id, user_id)
    if role is None:
        raise UnauthorizedError("You are not a member of this group")

    is_uploader = document.uploaded_by == user_id
    if not can_manage_document(role, is_uploader, action):
        raise UnauthorizedError(f"Role {role.value} is not allowed to {action.replace('_', ' ')} this document")
    return role
