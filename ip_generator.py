"""
IPアドレスジェネレーター
指定されたCIDRレンジ内でランダムなIPv4/IPv6アドレスを生成する。
プレフィックス部分はベースアドレスを保持し、ホスト部分のみをランダム化する。
"""

import logging
import random

from address_space import AddressSpace, parse_cidr
from errors import CIDRError, EmptyRangeList

logger = logging.getLogger(__name__)

# 不正なCIDRの場合に返すフォールバックアドレス
IPV4_FALLBACK = "0.0.0.0"
IPV6_FALLBACK = "2001:db8::1"

# 1回の生成で返すアドレス数
BATCH_SIZE = 5


def choose_range(ranges, rng: random.Random | None = None) -> str:
    """
    レンジを1つ選択する。
    複数指定された場合は呼び出しごとに一様ランダムで選び直す（レンジサイズで重み付けしない）。
    """
    rng = rng or random
    if isinstance(ranges, str):
        if not ranges:
            raise EmptyRangeList("empty CIDR")
        return ranges
    if not ranges:
        raise EmptyRangeList("no CIDR ranges supplied")
    return rng.choice(list(ranges))


def _randomize_low_bits(value: int, bits: int, segment_max: int, rng) -> int:
    """上位ビットを保持したまま、下位 bits ビットをランダム化する"""
    max_value = 2 ** bits - 1
    base_value = value & (segment_max - max_value)
    return base_value | rng.randint(0, max_value)


def _randomize(space: AddressSpace, segment_bits: int, segment_max: int, rng) -> list[int]:
    count = len(space.segments)
    full_segments = space.host_bits // segment_bits
    partial_bits = space.host_bits % segment_bits

    segments = list(space.segments)
    for i in range(count - full_segments, count):
        segments[i] = rng.randint(0, segment_max)

    if partial_bits > 0:
        index = count - full_segments - 1
        segments[index] = _randomize_low_bits(segments[index], partial_bits, segment_max, rng)

    return segments


def random_ipv4_from_cidr(ranges, rng: random.Random | None = None) -> str:
    """CIDRからIPv4アドレスを1つ生成する（エラー時は例外を送出）"""
    rng = rng or random
    space = parse_cidr(choose_range(ranges, rng), version=4)
    octets = _randomize(space, 8, 255, rng)

    # ネットワーク・ブロードキャストの簡易回避（最終オクテットのみ判定）
    if octets[3] == 0 or octets[3] == 255:
        octets[3] = rng.randint(1, 254)

    return ".".join(str(o) for o in octets)


def random_ipv6_from_cidr(ranges, rng: random.Random | None = None) -> str:
    """CIDRからIPv6アドレスを1つ生成する（エラー時は例外を送出）"""
    rng = rng or random
    space = parse_cidr(choose_range(ranges, rng), version=6)
    hextets = _randomize(space, 16, 65535, rng)
    # ゼロ圧縮はせず常に8セグメントで出力
    return ":".join(format(h, "x") for h in hextets)


def generate_ipv4(ranges, rng: random.Random | None = None) -> str:
    """ランダムなIPv4アドレスを1つ生成する。不正なCIDRの場合は 0.0.0.0"""
    try:
        return random_ipv4_from_cidr(ranges, rng)
    except CIDRError as e:
        logger.warning("Invalid IPv4 CIDR %r: %s", ranges, e)
        return IPV4_FALLBACK


def generate_ipv6(ranges, rng: random.Random | None = None) -> str:
    """ランダムなIPv6アドレスを1つ生成する。不正なCIDRの場合は 2001:db8::1"""
    try:
        return random_ipv6_from_cidr(ranges, rng)
    except CIDRError as e:
        logger.warning("Invalid IPv6 CIDR %r: %s", ranges, e)
        return IPV6_FALLBACK


def generate_batch(ranges, version: int, count: int = BATCH_SIZE,
                   rng: random.Random | None = None) -> tuple[str, ...]:
    """指定した数だけアドレスを生成する（生成順を保持）"""
    generate = generate_ipv4 if version == 4 else generate_ipv6
    return tuple(generate(ranges, rng) for _ in range(count))
