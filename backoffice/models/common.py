from __future__ import annotations

import uuid
from datetime import date, datetime, timezone
from typing import Annotated

from pydantic import Field

# Montants en FCFA (XAF) : entiers, pas de sous-unité.
Amount = Annotated[int, Field(ge=0)]


def gen_id() -> str:
    return str(uuid.uuid4())


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


# ---------- Horloge ---------- #

class Clock:
    """Source du temps courant, injectée partout où l'on dérive un état du temps."""

    def now(self) -> datetime:
        return utcnow()

    def today(self) -> date:
        return self.now().date()


class SystemClock(Clock):
    pass


class FixedClock(Clock):
    """Horloge figée (tests, rejeu)."""

    def __init__(self, at: datetime) -> None:
        if at.tzinfo is None:
            at = at.replace(tzinfo=timezone.utc)
        self._at = at

    def now(self) -> datetime:
        return self._at

    def advance_to(self, at: datetime) -> None:
        if at.tzinfo is None:
            at = at.replace(tzinfo=timezone.utc)
        self._at = at
