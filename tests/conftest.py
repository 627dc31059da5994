import asyncio

import pytest

from custom_components.easee_cloud.easee_api import EaseeToken


class ScheduledJob:
    def __init__(self, delay, action):
        self.delay = delay
        self.action = action
        self.cancelled = False
        self.fired = False

    def cancel(self):
        self.cancelled = True


class FakeScheduler:
    """Records timers instead of arming them; tests fire them explicitly."""

    def __init__(self):
        self.jobs = []

    def __call__(self, delay, action):
        job = ScheduledJob(delay, action)
        self.jobs.append(job)
        return job.cancel

    @property
    def pending(self):
        return [job for job in self.jobs if not job.cancelled and not job.fired]

    async def fire_next(self):
        job = self.pending[0]
        job.fired = True
        await job.action()
        return job


class FakeClock:
    def __init__(self, now=1000.0):
        self.now = now

    def __call__(self):
        return self.now

    def advance(self, seconds):
        self.now += seconds


class FakeAuthApi:
    """Stands in for the Easee auth endpoints."""

    def __init__(self, expires_in=86400):
        self.expires_in = expires_in
        self.login_calls = []
        self.refresh_calls = []
        self.login_error = None
        self.refresh_error = None

    async def login(self, username, password):
        self.login_calls.append((username, password))
        # yield so concurrent callers really interleave
        await asyncio.sleep(0)
        if self.login_error is not None:
            raise self.login_error
        count = len(self.login_calls)
        return EaseeToken(f"access-{username}-{count}", f"refresh-{username}-{count}", self.expires_in)

    async def refresh_token(self, token):
        self.refresh_calls.append(token)
        await asyncio.sleep(0)
        if self.refresh_error is not None:
            raise self.refresh_error
        count = len(self.refresh_calls)
        return EaseeToken(f"{token.access_token}-r{count}", token.refresh_token, self.expires_in)


@pytest.fixture
def scheduler():
    return FakeScheduler()


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def auth_api():
    return FakeAuthApi()
