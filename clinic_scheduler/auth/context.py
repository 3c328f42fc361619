from dataclasses import dataclass

SUPER_ADMIN = "SUPER_ADMIN"
CLINIC_ADMIN = "CLINIC_ADMIN"
SECRETARY = "SECRETARY"
DOCTOR = "DOCTOR"
BOT = "BOT"

STAFF_ROLES = frozenset({SUPER_ADMIN, CLINIC_ADMIN, SECRETARY, DOCTOR})


@dataclass(frozen=True)
class CallerContext:
    """Who is calling and on behalf of which clinic.

    Booking code trusts this and never re-derives tenant scoping. Automated
    channels carry ``role=BOT`` and no ``user_id``.
    """
    tenant_id: int
    role: str
    user_id: int | None = None

    @property
    def actor(self) -> str:
        if self.user_id is None:
            return self.role
        return str(self.user_id)

    @property
    def is_doctor(self) -> bool:
        return self.role == DOCTOR
