from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Optional

EMAIL_PATTERN = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")


class InvalidRegistration(ValueError):
    """Raised when a registration record fails field validation."""

    def __init__(self, errors: dict[str, str]) -> None:
        super().__init__("; ".join(f"{name}: {message}" for name, message in errors.items()))
        self.errors = errors


@dataclass(slots=True)
class RegistrationRecord:
    name: str
    email: str
    coupon_code: str
    mobile: Optional[str] = None

    def validate(self) -> None:
        errors: dict[str, str] = {}
        if not self.name.strip():
            errors["name"] = "Name is required"
        if not EMAIL_PATTERN.match(self.email.strip()):
            errors["email"] = "Invalid email"
        if not self.coupon_code.strip():
            errors["couponCode"] = "Coupon code is required"
        if errors:
            raise InvalidRegistration(errors)

    def to_payload(self) -> dict[str, str]:
        payload = {
            "name": self.name.strip(),
            "email": self.email.strip(),
            "couponCode": self.coupon_code.strip(),
        }
        if self.mobile and self.mobile.strip():
            payload["mobile"] = self.mobile.strip()
        return payload
