"""
アドレス空間モジュール
CIDR文字列をベースアドレス（セグメント列）とプレフィックス長に分解し、
利用可能なホスト数を計算する。
"""

import re
from dataclasses import dataclass

from errors import MalformedAddress, MalformedCIDR

# アドレスファミリーごとの定義（ビット幅, セグメント数, セグメント最大値）
IPV4_BITS = 32
IPV6_BITS = 128
IPV4_SEGMENTS = 4
IPV6_SEGMENTS = 8
OCTET_MAX = 255
HEXTET_MAX = 65535

_DECIMAL = re.compile(r"[0-9]+")
_HEXTET = re.compile(r"[0-9a-fA-F]{1,4}")


@dataclass(frozen=True)
class AddressSpace:
    """CIDRから導出される不変のアドレス空間"""
    version: int
    segments: tuple[int, ...]
    prefix_len: int

    @property
    def bit_width(self) -> int:
        return IPV4_BITS if self.version == 4 else IPV6_BITS

    @property
    def host_bits(self) -> int:
        return self.bit_width - self.prefix_len

    @property
    def usable_count(self) -> int:
        """
        利用可能なアドレス数を返す。
        IPv4はネットワーク・ブロードキャストの2個を除外する（2を超える場合のみ）。
        IPv6には除外規則を適用しない。
        """
        total = 2 ** self.host_bits
        if self.version == 4 and total > 2:
            total -= 2
        return total

    @property
    def base_address(self) -> str:
        if self.version == 4:
            return ".".join(str(s) for s in self.segments)
        return ":".join(format(s, "x") for s in self.segments)


def _parse_ipv4(base: str) -> tuple[int, ...]:
    parts = base.split(".")
    if len(parts) != IPV4_SEGMENTS:
        raise MalformedAddress(f"expected 4 octets: {base!r}")
    octets = []
    for part in parts:
        if not _DECIMAL.fullmatch(part):
            raise MalformedAddress(f"non-numeric octet {part!r} in {base!r}")
        value = int(part)
        if value > OCTET_MAX:
            raise MalformedAddress(f"octet out of range {value} in {base!r}")
        octets.append(value)
    return tuple(octets)


def _parse_hextet(part: str, base: str) -> int:
    # 省略されたセグメントは0扱い
    if not part:
        return 0
    if not _HEXTET.fullmatch(part):
        raise MalformedAddress(f"invalid hextet {part!r} in {base!r}")
    return int(part, 16)


def _parse_ipv6(base: str) -> tuple[int, ...]:
    if base.count("::") > 1:
        raise MalformedAddress(f"multiple '::' in {base!r}")

    if "::" in base:
        # "::" を必要な数のゼロセグメントに展開する
        left_text, right_text = base.split("::")
        left = left_text.split(":") if left_text else []
        right = right_text.split(":") if right_text else []
        missing = IPV6_SEGMENTS - len(left) - len(right)
        if missing < 0:
            raise MalformedAddress(f"too many segments in {base!r}")
        parts = left + ["0"] * missing + right
    else:
        parts = base.split(":")
        if len(parts) > IPV6_SEGMENTS:
            raise MalformedAddress(f"too many segments in {base!r}")
        parts += ["0"] * (IPV6_SEGMENTS - len(parts))

    return tuple(_parse_hextet(part, base) for part in parts)


def parse_cidr(cidr: str, version: int | None = None) -> AddressSpace:
    """
    CIDR文字列を解析してAddressSpaceを返す。
    version を指定した場合、アドレスファミリーが一致しなければ MalformedAddress。
    """
    if not isinstance(cidr, str) or "/" not in cidr:
        raise MalformedCIDR(f"missing '/' separator: {cidr!r}")

    base, prefix_text = cidr.strip().split("/", 1)
    detected = 6 if ":" in base else 4
    if version is not None and version != detected:
        raise MalformedAddress(f"expected IPv{version} address: {base!r}")

    prefix_text = prefix_text.strip()
    if not _DECIMAL.fullmatch(prefix_text):
        raise MalformedCIDR(f"invalid prefix length: {cidr!r}")
    prefix_len = int(prefix_text)
    max_bits = IPV4_BITS if detected == 4 else IPV6_BITS
    if prefix_len > max_bits:
        raise MalformedCIDR(f"prefix length {prefix_len} exceeds {max_bits}: {cidr!r}")

    segments = _parse_ipv4(base) if detected == 4 else _parse_ipv6(base)
    return AddressSpace(version=detected, segments=segments, prefix_len=prefix_len)


def range_details(cidr: str) -> dict:
    """CIDRのレンジ詳細（総アドレス数・ベースアドレス・プレフィックス）を返す"""
    space = parse_cidr(cidr)
    return {
        "total_ips": space.usable_count,
        "base_ip": space.base_address,
        "prefix": space.prefix_len,
    }


def total_usable(cidrs) -> int:
    """複数CIDRの利用可能アドレス数の合計（不正なCIDRはスキップ）"""
    total = 0
    for cidr in cidrs:
        try:
            total += parse_cidr(cidr).usable_count
        except ValueError:
            continue
    return total
