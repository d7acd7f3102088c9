"""
Contracts for the services this engine consumes but does not own:
malware scanning and group membership lookup.
"""
from dataclasses import dataclass
from typing import BinaryIO, Optional
from uuid import UUID

from signing.documents.services.permission import GroupRole


@dataclass
class ScanResult:
    is_clean: bool
    threat_name: Optional[str] = None


class VirusScanner:

    def scan(self, stream: BinaryIO, file_name: str) -> ScanResult:
        raise NotImplementedError


class GroupDirectory:

    def is_member(self, group_id: UUID, user_id: UUID) -> bool:
        raise NotImplementedError

    def role_of(self, group_id: UUID, user_id: UUID) -> Optional[GroupRole]:
        raise NotImplementedError
