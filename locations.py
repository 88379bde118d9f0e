"""
ロケーションカタログモジュール
locations.json（ファイルまたはURL）からロケーション一覧を読み込む。
読み込みに失敗した場合は組み込みの3ロケーションを使用する。
"""

import asyncio
import json
import logging
import os

import aiohttp
from pydantic import BaseModel, Field, ValidationError

from address_space import total_usable

logger = logging.getLogger(__name__)

# 有効なレンジが計算できない場合の表示用既定値
DEFAULT_AVAILABLE_IPV4 = 65534
DEFAULT_AVAILABLE_IPV6 = 1208925819614629174706176


class LocationRanges(BaseModel):
    # null は空リストと同じ扱い（旧形式の cidr にフォールバック）
    ipv4: list[str] | None = None
    ipv6: list[str] | None = None


class Location(BaseModel):
    """ロケーション1件（新形式 ranges と旧形式 cidr/cidrv6 の両方に対応）"""
    id: str
    name: str
    flag: str = ""
    ranges: LocationRanges | None = None
    cidr: str | None = None
    cidrv6: str | None = None
    is_city: bool | None = Field(default=None, alias="isCity")
    available: int | None = None
    available_v6: int | None = Field(default=None, alias="availableV6")

    model_config = {"populate_by_name": True}

    def ipv4_ranges(self) -> list[str]:
        if self.ranges and self.ranges.ipv4:
            return list(self.ranges.ipv4)
        return [self.cidr] if self.cidr else []

    def ipv6_ranges(self) -> list[str]:
        if self.ranges and self.ranges.ipv6:
            return list(self.ranges.ipv6)
        return [self.cidrv6] if self.cidrv6 else []

    def ranges_for(self, version: int) -> list[str]:
        return self.ipv4_ranges() if version == 4 else self.ipv6_ranges()

    def available_ipv4(self) -> int:
        """全IPv4レンジの利用可能アドレス数の合計"""
        return total_usable(self.ipv4_ranges()) or DEFAULT_AVAILABLE_IPV4

    @property
    def country_name(self) -> str:
        """国名部分を返す（例: Germany (Frankfurt) → Germany）"""
        return self.name.split(" (")[0] if self.name else "Unknown"

    @property
    def display_name(self) -> str:
        if self.is_city is False:
            return self.name.replace(" non-city", "")
        return self.name

    def cidr_summary(self) -> str:
        """先頭2件のCIDRを表示用に連結する"""
        cidrs = self.ipv4_ranges()
        if not cidrs:
            return ""
        summary = ", ".join(cidrs[:2])
        return summary + ("..." if len(cidrs) > 2 else "")


def fallback_locations() -> list[Location]:
    """カタログが読めない場合の組み込みロケーション"""
    return [
        Location(
            id="de-frankfurt", name="Germany (Frankfurt)", flag="de",
            cidr="10.0.0.0/16", cidrv6="2001:db8:1::/48",
            available=65534, available_v6=DEFAULT_AVAILABLE_IPV6,
        ),
        Location(
            id="ae-dubai", name="UAE (Dubai)", flag="ae",
            cidr="10.1.0.0/16", cidrv6="2001:db8:2::/48",
            available=65534, available_v6=DEFAULT_AVAILABLE_IPV6,
        ),
        Location(
            id="gb-london", name="UK (London)", flag="gb",
            cidr="10.2.0.0/16", cidrv6="2001:db8:3::/48",
            available=65534, available_v6=DEFAULT_AVAILABLE_IPV6,
        ),
    ]


def parse_locations(data) -> list[Location]:
    """レコードを1件ずつ検証し、不正なレコードは警告を出してスキップする"""
    if not isinstance(data, list):
        raise ValueError("location catalog must be a JSON array")
    locations = []
    for index, item in enumerate(data):
        try:
            locations.append(Location.model_validate(item))
        except ValidationError as e:
            logger.warning("Skipping invalid location record #%d: %s", index, e)
    return locations


async def _fetch_json(url: str, timeout: float):
    async with aiohttp.ClientSession() as session:
        async with session.get(url, timeout=aiohttp.ClientTimeout(total=timeout)) as resp:
            resp.raise_for_status()
            return await resp.json(content_type=None)


def _read_json(path: str):
    with open(path, encoding="utf-8") as f:
        return json.load(f)


async def load_locations(source: str, timeout: float = 10.0) -> list[Location]:
    """
    ロケーションカタログを読み込む。
    source が http(s):// で始まる場合はHTTPで取得、それ以外はファイルパスとして扱う。
    """
    try:
        if source.startswith(("http://", "https://")):
            data = await _fetch_json(source, timeout)
        else:
            data = _read_json(os.path.expanduser(source))
        locations = parse_locations(data)
        if not locations:
            raise ValueError("location catalog is empty")
        logger.info("Loaded %d locations from %s", len(locations), source)
        return locations
    except (OSError, ValueError, aiohttp.ClientError, asyncio.TimeoutError) as e:
        logger.error("Error loading locations from %s: %s; using fallback", source, e)
        return fallback_locations()


def format_large_number(num) -> str:
    """非常に大きな数値を接尾辞付きで表記する（IPv6のアドレス数表示用）"""
    if not num:
        return "1.2Y"
    if num >= 1e24:
        return f"{num / 1e24:.1f}Y"
    if num >= 1e21:
        return f"{num / 1e21:.1f}Z"
    if num >= 1e18:
        return f"{num / 1e18:.1f}E"
    if num >= 1e15:
        return f"{num / 1e15:.1f}P"
    if num >= 1e12:
        return f"{num / 1e12:.1f}T"
    return f"{num:,}"
