class DocumentError(Exception):
    """Base exception for the document signing engine"""
    pass


class UnauthorizedError(DocumentError):
    """Caller is not a member, lacks the role, or presented an invalid token"""
    pass


class InvalidArgumentError(DocumentError):
    """Request data failed validation"""
    pass


class ConflictError(DocumentError):
    """Request clashes with the current signing state (already signed, out of order)"""
    pass


class NotFoundError(DocumentError):
    """Document, version, signature or certificate does not exist or is not visible"""
    pass


class InvalidOperationError(DocumentError):
    """Operation is not allowed in the document's current state"""
    pass
