"""
ロケーション照会モジュール
生成したIPv4アドレスの国名を外部APIで取得する。
IPv6は選択中ロケーションの国名をそのまま使う。
"""

import asyncio
import logging

import aiohttp

from config import settings

logger = logging.getLogger(__name__)

UNKNOWN = "Unknown"


async def lookup_country(session: aiohttp.ClientSession, ip: str,
                         url: str | None = None, timeout: float | None = None) -> dict:
    """外部APIを使ってIPアドレスの国名を取得する（失敗時は Unknown）"""
    info = {"country_name": UNKNOWN}
    try:
        async with session.get(
            url or settings.LOOKUP_URL,
            params={"ip": ip},
            timeout=aiohttp.ClientTimeout(total=timeout or settings.LOOKUP_TIMEOUT_SECONDS),
        ) as resp:
            if resp.status == 200:
                data = await resp.json(content_type=None)
                if data and data.get("country_name"):
                    info["country_name"] = data["country_name"]
    except (aiohttp.ClientError, asyncio.TimeoutError, ValueError) as e:
        logger.warning("Error fetching IP location for %s: %s", ip, e)
    return info


async def enrich(result, location, lookup=lookup_country) -> list[dict]:
    """
    生成結果に国名を付与した新しいリストを返す。
    result.addresses 自体は変更しない。
    """
    if result.version == 6:
        country = location.country_name if location else UNKNOWN
        return [{"address": ip, "country_name": country} for ip in result.addresses]

    async with aiohttp.ClientSession() as session:
        infos = await asyncio.gather(
            *(lookup(session, ip) for ip in result.addresses),
            return_exceptions=True,
        )

    enriched = []
    for ip, info in zip(result.addresses, infos):
        if isinstance(info, Exception):
            info = {"country_name": UNKNOWN}
        enriched.append({"address": ip, "country_name": info.get("country_name", UNKNOWN)})
    return enriched
