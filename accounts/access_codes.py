from __future__ import annotations

from typing import Mapping, Optional

from django.conf import settings


class AccessCodeRegistry:
    """
    Department -> access code lookup gating self-registration into
    restricted departments. The open department needs no code.
    """

    def __init__(self, codes: Mapping[str, str], open_department: str = "general") -> None:
        self._codes = dict(codes)
        self.open_department = open_department

    @classmethod
    def from_settings(cls) -> "AccessCodeRegistry":
        return cls(
            codes=getattr(settings, "DEPARTMENT_ACCESS_CODES", {}),
            open_department=getattr(settings, "OPEN_DEPARTMENT", "general"),
        )

    def verify(self, department: Optional[str], code: Optional[str]) -> bool:
        if department == self.open_department:
            return True
        expected = self._codes.get(department) if department else None
        if expected is None or code is None:
            return False
        return expected == code

    def departments(self) -> list[str]:
        return sorted({*self._codes.keys(), self.open_department})
