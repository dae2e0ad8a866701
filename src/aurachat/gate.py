"""Subscription-tier access gate."""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class TierGate:
    allowed_tiers: frozenset[str]

    @classmethod
    def from_csv(cls, value: str) -> "TierGate":
        tiers = {item.strip().lower() for item in value.split(",") if item.strip()}
        return cls(frozenset(tiers))

    def is_allowed(self, tier: str | None) -> bool:
        return bool(tier) and tier.strip().lower() in self.allowed_tiers
