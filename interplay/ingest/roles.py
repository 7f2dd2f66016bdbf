from __future__ import annotations

from dataclasses import dataclass
from typing import Protocol

from interplay.models import Role, Track


class RolePolicy(Protocol):
    """Strategy that labels a person track as parent, child or unknown."""

    def infer(self, track: Track) -> Role: ...


@dataclass(slots=True)
class SizeThresholdRolePolicy:
    """Treat larger average bounding boxes as the adult in frame."""

    threshold: float = 0.15

    def infer(self, track: Track) -> Role:
        if not track.events:
            return Role.UNKNOWN
        return Role.PARENT if track.average_size > self.threshold else Role.CHILD
