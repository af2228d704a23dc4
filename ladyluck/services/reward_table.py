"""
Lady Luck reward catalog and weighted sampling.

The catalog is built once at import and never mutated; a roll snapshots the
descriptors it drew into the player's pending batch, so a later deploy that
edits weights or names cannot rewrite an in-flight roll.
"""
from __future__ import annotations

import random
from dataclasses import dataclass, field
from typing import Any, Iterable, Sequence

CATEGORY_CURRENCY_BAG = "currency-bag"
CATEGORY_MATERIAL = "material"
CATEGORY_GEM = "gem"
CATEGORY_EQUIPMENT = "equipment"


@dataclass(frozen=True)
class RewardDescriptor:
    id: str
    display_name: str
    category: str
    weight: float
    quantity: int = 1
    quality: str | None = None
    socket_count: int | None = None
    equip_level: int | None = None

    def __post_init__(self):
        if not self.id:
            raise ValueError("reward id must be non-empty")
        if not (self.weight > 0):
            raise ValueError(f"reward {self.id!r}: weight must be > 0, got {self.weight!r}")

    def to_dict(self) -> dict[str, Any]:
        """Snapshot form. Optional attributes are omitted when absent, never null-filled."""
        out: dict[str, Any] = {
            "id": self.id,
            "displayName": self.display_name,
            "category": self.category,
            "weight": self.weight,
            "quantity": self.quantity,
        }
        if self.quality is not None:
            out["quality"] = self.quality
        if self.socket_count is not None:
            out["socketCount"] = self.socket_count
        if self.equip_level is not None:
            out["equipLevel"] = self.equip_level
        return out


@dataclass(frozen=True)
class RewardTable:
    entries: tuple[RewardDescriptor, ...] = field(default_factory=tuple)

    def __post_init__(self):
        if not self.entries:
            raise ValueError("reward table must not be empty")
        seen: set[str] = set()
        for e in self.entries:
            if e.id in seen:
                raise ValueError(f"duplicate reward id {e.id!r}")
            seen.add(e.id)

    @classmethod
    def of(cls, entries: Iterable[RewardDescriptor]) -> "RewardTable":
        return cls(tuple(entries))

    def total_weight(self) -> float:
        return sum(e.weight for e in self.entries)

    def get(self, reward_id: str) -> RewardDescriptor | None:
        for e in self.entries:
            if e.id == reward_id:
                return e
        return None

    def __len__(self) -> int:
        return len(self.entries)

    def __iter__(self):
        return iter(self.entries)


class WeightedSampler:
    """
    Draws one descriptor with probability weight_i / total.

    Entry i owns the half-open interval [c_{i-1}, c_i) of the cumulative sum,
    walked in declaration order. Pass a seeded ``random.Random`` for
    reproducible draws.
    """

    def __init__(self, table: RewardTable, rng: random.Random | None = None):
        self.table = table
        self.rng = rng or random

    def sample(self) -> RewardDescriptor:
        entries = self.table.entries
        total = self.table.total_weight()
        r = self.rng.random() * total
        cumulative = 0.0
        for e in entries:
            cumulative += e.weight
            if r < cumulative:
                return e
        # float summation drift can leave r >= final cumulative
        return entries[-1]

    def sample_batch(self, n: int) -> list[RewardDescriptor]:
        # with replacement: repeats across slots are expected
        return [self.sample() for _ in range(n)]


def _item(reward_id: str, name: str, category: str, weight: float, **extra) -> RewardDescriptor:
    return RewardDescriptor(id=reward_id, display_name=name, category=category, weight=weight, **extra)


_REWARDS: Sequence[RewardDescriptor] = (
    # Money bag progression (class 1-10)
    _item("money_bag_1", "Class 1 Pouch", CATEGORY_CURRENCY_BAG, 25),
    _item("money_bag_2", "Class 2 Pouch", CATEGORY_CURRENCY_BAG, 20),
    _item("money_bag_3", "Class 3 Sack", CATEGORY_CURRENCY_BAG, 15),
    _item("money_bag_4", "Class 4 Sack", CATEGORY_CURRENCY_BAG, 12),
    _item("money_bag_5", "Class 5 Chest", CATEGORY_CURRENCY_BAG, 10),
    _item("money_bag_6", "Class 6 Chest", CATEGORY_CURRENCY_BAG, 8),
    _item("money_bag_7", "Class 7 Treasury", CATEGORY_CURRENCY_BAG, 6),
    _item("money_bag_8", "Class 8 Treasury", CATEGORY_CURRENCY_BAG, 4),
    _item("money_bag_9", "Class 9 Royal Coffer", CATEGORY_CURRENCY_BAG, 2),
    _item("money_bag_10", "Class 10 Imperial Hoard", CATEGORY_CURRENCY_BAG, 1),
    # Ignis upgrade materials (+1 common .. +6 ultra rare)
    _item("ignis_plus_1", "+1 Ignis", CATEGORY_MATERIAL, 20),
    _item("ignis_plus_2", "+2 Ignis", CATEGORY_MATERIAL, 10),
    _item("ignis_plus_3", "+3 Ignis", CATEGORY_MATERIAL, 5),
    _item("ignis_plus_4", "+4 Ignis", CATEGORY_MATERIAL, 1),
    _item("ignis_plus_5", "+5 Ignis", CATEGORY_MATERIAL, 0.2),
    _item("ignis_plus_6", "+6 Ignis", CATEGORY_MATERIAL, 0.05),
    # Comets & wyrm spheres
    _item("comet_stone", "Comet", CATEGORY_MATERIAL, 15),
    _item("wyrm_sphere_artifact", "Wyrm Sphere", CATEGORY_MATERIAL, 5),
    # Scrolls
    _item("comet_scroll", "Comet Scroll", CATEGORY_MATERIAL, 0.5),
    _item("wyrm_sphere_scroll", "Wyrm Sphere Scroll", CATEGORY_MATERIAL, 0.15),
    # Gemstones
    _item("gem_drake_radiant", "Radiant Drake Heartstone", CATEGORY_GEM, 1, quality="Radiant"),
    _item("gem_phoenix_radiant", "Radiant Ember Talon", CATEGORY_GEM, 1, quality="Radiant"),
    _item("gem_unicorn_radiant", "Radiant Unicorn Shard", CATEGORY_GEM, 1, quality="Radiant"),
    # High-end equipment
    _item("boots_10", "Brilliant 2-Socket Boots", CATEGORY_EQUIPMENT, 0.1,
          quality="Brilliant", socket_count=2, equip_level=10),
    _item("bs_10", "Brilliant 2-Socket Mageblade", CATEGORY_EQUIPMENT, 0.1,
          quality="Brilliant", socket_count=2, equip_level=10),
)

LADY_LUCK_REWARDS = RewardTable.of(_REWARDS)

# Secondary drop rolled independently on every claim
SECONDARY_DROP_ID = "lucky_lady"
SECONDARY_DROP_NAME = "Lucky Lady"
