from dataclasses import dataclass

from fleet_usage.core.enums import UserRole


@dataclass(frozen=True)
class RequesterIdentity:
    """Who is calling. Passed explicitly into every engine operation."""

    user_id: int
    role: UserRole = UserRole.OPERATOR

    @property
    def is_admin(self) -> bool:
        return self.role == UserRole.ADMIN
