"""
ジェネレーターセッション
ロケーション一覧・選択中ロケーション・レート制限をまとめて保持し、
アドレス生成の流れ（レート制限チェック → 生成）を提供する。
"""

import logging
import random
from dataclasses import dataclass

from errors import ActionBlocked, NoLocationSelected, UnknownLocation
from ip_generator import BATCH_SIZE, generate_batch
from locations import Location
from rate_limiter import RateLimiter

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class GenerationResult:
    """1回の生成結果（生成後は不変）"""
    version: int
    location_id: str
    addresses: tuple[str, ...]


class GeneratorSession:
    def __init__(self, locations: list[Location], limiter: RateLimiter | None = None,
                 batch_size: int = BATCH_SIZE, rng: random.Random | None = None):
        self.locations = list(locations)
        self.limiter = limiter or RateLimiter()
        self.batch_size = batch_size
        self.selected: Location | None = None
        self._rng = rng or random.Random()

    def get(self, location_id: str) -> Location:
        for location in self.locations:
            if location.id == location_id:
                return location
        raise UnknownLocation(location_id)

    def select(self, location_id: str) -> Location:
        self.selected = self.get(location_id)
        logger.info("Selected location %s", self.selected.id)
        return self.selected

    def select_random(self) -> Location | None:
        if not self.locations:
            return None
        self.selected = self._rng.choice(self.locations)
        logger.info("Selected random location %s", self.selected.id)
        return self.selected

    def generate(self, version: int) -> GenerationResult:
        """
        アドレスを batch_size 件生成する。
        レート制限中は ActionBlocked、ロケーション未選択なら NoLocationSelected。
        """
        action = "ipv4" if version == 4 else "ipv6"
        if self.limiter.check_and_record(action):
            raise ActionBlocked(action)

        location = self.selected
        if location is None:
            raise NoLocationSelected("Please select a location first")

        ranges = location.ranges_for(version)
        if not ranges:
            logger.error("No IPv%d ranges found for location: %s", version, location.name)

        addresses = generate_batch(ranges, version, self.batch_size, self._rng)
        logger.debug("Generated IPv%d for %s: %s", version, location.name, ", ".join(addresses))
        return GenerationResult(version=version, location_id=location.id, addresses=addresses)

    def record_copy(self, address: str) -> str:
        if self.limiter.check_and_record("copy"):
            raise ActionBlocked("copy")
        return address
