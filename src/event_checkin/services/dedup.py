from __future__ import annotations

from event_checkin.models import RegistrationToken


class DedupFilter:
    """Tokens already handled during the current scan session."""

    def __init__(self) -> None:
        self._seen: set[str] = set()

    def seen(self, token: RegistrationToken) -> bool:
        return token in self._seen

    def remember(self, token: RegistrationToken) -> None:
        self._seen.add(token)

    def forget(self, token: RegistrationToken) -> None:
        self._seen.discard(token)

    def clear(self) -> None:
        self._seen.clear()

    def __contains__(self, token: object) -> bool:
        return token in self._seen

    def __len__(self) -> int:
        return len(self._seen)
