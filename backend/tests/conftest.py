import os
import sys
from datetime import datetime, timezone

import pytest
import requests

BACKEND_DIR = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))
sys.path.insert(0, BACKEND_DIR)

from services.replay_guard import MemoryCodeCache, ReplayGuard
from services.route_resolver import RouteResolver


class FakeClock:
    """ساعة ثابتة يمكن تحريكها يدوياً"""

    def __init__(self, now: datetime):
        self.now = now

    def __call__(self) -> datetime:
        return self.now


class FakeResponse:
    def __init__(self, status_code=200, payload=None):
        self.status_code = status_code
        self._payload = payload

    def json(self):
        if self._payload is None:
            raise ValueError("No JSON body")
        return self._payload


class FakeSession:
    """بديل requests.Session يسجل الطلبات"""

    def __init__(self, response=None, error=None):
        self.response = response
        self.error = error
        self.calls = []

    def get(self, url, timeout=None):
        self.calls.append({"url": url, "timeout": timeout})
        if self.error:
            raise self.error
        return self.response


@pytest.fixture
def clock():
    return FakeClock(datetime(2026, 3, 1, 8, 0, tzinfo=timezone.utc))


@pytest.fixture
def memory_cache(clock):
    return MemoryCodeCache(clock=clock)


@pytest.fixture
def replay_guard(memory_cache, clock):
    return ReplayGuard(memory_cache, clock=clock)


@pytest.fixture
def offline_resolver():
    """RouteResolver بدون خدمة توجيه - يستخدم المسافة المباشرة دائماً"""
    return RouteResolver(base_url="http://osrm.test", session=FakeSession(error=requests.ConnectionError("offline")))


@pytest.fixture
def office_square():
    # مربع صغير حول مكتب في الرياض
    return [
        {"lat": 24.70, "lng": 46.67},
        {"lat": 24.70, "lng": 46.69},
        {"lat": 24.72, "lng": 46.69},
        {"lat": 24.72, "lng": 46.67},
    ]
