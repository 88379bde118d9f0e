import dataclasses
import ipaddress
import random

import pytest

from errors import ActionBlocked, NoLocationSelected, UnknownLocation
from locations import Location, fallback_locations
from rate_limiter import RateLimiter
from session import GeneratorSession


class ManualClock:
    now = 0.0

    def __call__(self):
        return self.now


def make_session(locations=None, **kwargs):
    clock = ManualClock()
    limiter = RateLimiter(clock=clock, scheduler=lambda delay, cb: None)
    session = GeneratorSession(
        fallback_locations() if locations is None else locations,
        limiter, rng=random.Random(99), **kwargs,
    )
    return session, clock


def test_generate_requires_selection():
    session, _ = make_session()
    with pytest.raises(NoLocationSelected):
        session.generate(4)


def test_generate_ipv4_batch_inside_selected_location():
    session, _ = make_session()
    session.select("ae-dubai")
    result = session.generate(4)
    assert result.version == 4
    assert result.location_id == "ae-dubai"
    assert len(result.addresses) == 5
    network = ipaddress.ip_network("10.1.0.0/16")
    assert all(ipaddress.ip_address(ip) in network for ip in result.addresses)


def test_generate_ipv6_batch():
    session, _ = make_session()
    session.select("gb-london")
    result = session.generate(6)
    network = ipaddress.ip_network("2001:db8:3::/48")
    assert all(ipaddress.ip_address(ip) in network for ip in result.addresses)


def test_result_is_immutable():
    session, _ = make_session()
    session.select("de-frankfurt")
    result = session.generate(4)
    with pytest.raises(dataclasses.FrozenInstanceError):
        result.addresses = ()


def test_location_without_ranges_yields_fallbacks():
    session, _ = make_session([Location(id="empty", name="Empty")])
    session.select("empty")
    assert session.generate(4).addresses == ("0.0.0.0",) * 5
    assert session.generate(6).addresses == ("2001:db8::1",) * 5


def test_unknown_location():
    session, _ = make_session()
    with pytest.raises(UnknownLocation):
        session.select("nowhere")


def test_select_random_picks_known_location():
    session, _ = make_session()
    location = session.select_random()
    assert location in session.locations
    assert session.selected is location


def test_select_random_with_no_locations():
    session, _ = make_session([])
    assert session.select_random() is None


def test_generate_is_rate_limited_per_family():
    session, clock = make_session()
    session.select("de-frankfurt")
    for _ in range(4):
        session.generate(4)
        clock.now += 0.1
    with pytest.raises(ActionBlocked) as exc:
        session.generate(4)
    assert exc.value.action == "ipv4"
    assert len(session.generate(6).addresses) == 5


def test_rate_limit_checked_before_selection():
    session, clock = make_session()
    for _ in range(4):
        with pytest.raises(NoLocationSelected):
            session.generate(6)
        clock.now += 0.1
    with pytest.raises(ActionBlocked):
        session.generate(6)


def test_record_copy_rate_limited():
    session, _ = make_session()
    for _ in range(4):
        assert session.record_copy("10.0.0.1") == "10.0.0.1"
    with pytest.raises(ActionBlocked):
        session.record_copy("10.0.0.1")


def test_custom_batch_size():
    session, _ = make_session(batch_size=2)
    session.select("de-frankfurt")
    assert len(session.generate(4).addresses) == 2


def test_default_limiter_blocks_outside_event_loop():
    session = GeneratorSession(fallback_locations())
    session.select("de-frankfurt")
    for _ in range(4):
        session.generate(4)
    with pytest.raises(ActionBlocked):
        session.generate(4)
    assert session.limiter.state("ipv4").blocked_until is not None
