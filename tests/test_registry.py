"""Tests for the job registry: validation, defaults, snapshots."""
import threading

import pytest

from job_queue.errors import InvalidJobError
from job_queue.registry import DEFAULT_TIMEOUT_SECONDS, JobRegistry, RegisteredJob
from job_queue.message import DEFAULT_MAX_RETRIES

from conftest import noop_job


class TestRegister:
    def test_fills_defaults(self):
        registry = JobRegistry()
        stored = registry.register(noop_job())
        assert stored.max_retries == DEFAULT_MAX_RETRIES == 3
        assert stored.timeout == DEFAULT_TIMEOUT_SECONDS == 30.0
        assert registry.get("noop") == stored

    def test_keeps_explicit_policy(self):
        registry = JobRegistry()
        registry.register(noop_job(max_retries=7, timeout=2.5))
        job = registry.get("noop")
        assert job.max_retries == 7
        assert job.timeout == 2.5

    def test_empty_name_rejected(self):
        registry = JobRegistry()
        with pytest.raises(InvalidJobError):
            registry.register(noop_job(name=""))
        assert len(registry) == 0

    def test_missing_handler_rejected(self):
        registry = JobRegistry()
        with pytest.raises(InvalidJobError):
            registry.register(RegisteredJob(name="broken", handler=None))
        assert "broken" not in registry

    def test_negative_policy_rejected(self):
        registry = JobRegistry()
        with pytest.raises(InvalidJobError):
            registry.register(noop_job(max_retries=-1))
        with pytest.raises(InvalidJobError):
            registry.register(noop_job(timeout=-1))
        assert len(registry) == 0

    def test_overwrites_same_name(self):
        registry = JobRegistry()
        registry.register(noop_job(max_retries=1))
        registry.register(noop_job(max_retries=9))
        assert len(registry) == 1
        assert registry.get("noop").max_retries == 9


class TestLookup:
    def test_get_unknown_returns_none(self):
        assert JobRegistry().get("missing") is None

    def test_list_is_a_snapshot(self):
        registry = JobRegistry()
        registry.register(noop_job("a"))
        registry.register(noop_job("b"))

        jobs = registry.list()
        jobs.clear()

        assert sorted(job.name for job in registry.list()) == ["a", "b"]

    def test_concurrent_registration_from_threads(self):
        registry = JobRegistry()
        threads = [
            threading.Thread(target=registry.register, args=(noop_job(f"job-{i}"),))
            for i in range(50)
        ]
        for t in threads:
            t.start()
        for t in threads:
            t.join()
        assert len(registry) == 50
