"""
Configuration loader for the job worker.
Reads settings from YAML file with environment variable substitution.
"""
from __future__ import annotations

import json
import os
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Optional

import structlog
import yaml

logger = structlog.get_logger()

CRON_ENTRIES_ENV = "JOB_CRON_ENTRIES"


@dataclass
class QueueConfig:
    backend: str = "memory"             # "memory" for dev, "redis" for production
    redis_url: str = "redis://localhost:6379"
    namespace: str = "jobs"             # keys become {namespace}:main / {namespace}:dlq
    wait_time: float = 5.0              # seconds per blocking pop


@dataclass
class WebhookConfig:
    timeout: float = 10.0               # seconds per outgoing webhook request


@dataclass
class CronEntry:
    name: str = ""
    spec: str = ""                      # standard 5-field cron expression
    job: str = ""
    payload: dict[str, Any] = field(default_factory=dict)


@dataclass
class JobsConfig:
    cron_entries: list[CronEntry] = field(default_factory=list)


@dataclass
class Settings:
    app_name: str = "JobWorker"
    debug: bool = False
    log_level: str = "INFO"
    log_format: str = "console"         # "console" | "json"
    timezone: str = "UTC"
    queue: QueueConfig = field(default_factory=QueueConfig)
    webhook: WebhookConfig = field(default_factory=WebhookConfig)
    jobs: JobsConfig = field(default_factory=JobsConfig)


_settings: Optional[Settings] = None


def _substitute_env_vars(value: str) -> str:
    """Replace ${VAR_NAME} patterns with environment variable values."""
    pattern = re.compile(r'\$\{(\w+)\}')
    def replacer(match):
        var_name = match.group(1)
        return os.environ.get(var_name, match.group(0))
    return pattern.sub(replacer, value)


def _process_values(obj: Any) -> Any:
    """Recursively substitute env vars in all string values."""
    if isinstance(obj, str):
        return _substitute_env_vars(obj)
    elif isinstance(obj, dict):
        return {k: _process_values(v) for k, v in obj.items()}
    elif isinstance(obj, list):
        return [_process_values(v) for v in obj]
    return obj


def parse_cron_entries(raw: Any) -> list[CronEntry]:
    """Build CronEntry objects from a list of mappings, skipping non-mappings."""
    entries = []
    for item in raw or []:
        if not isinstance(item, dict):
            continue
        payload = item.get("payload")
        entries.append(CronEntry(
            name=str(item.get("name") or ""),
            spec=str(item.get("spec") or ""),
            job=str(item.get("job") or ""),
            payload=payload if isinstance(payload, dict) else {},
        ))
    return entries


def load_settings(config_path: str = None) -> Settings:
    """Load settings from YAML file."""
    global _settings

    if config_path is None:
        config_path = os.environ.get(
            "WORKER_CONFIG",
            str(Path(__file__).parent / "settings.yaml"),
        )

    settings = Settings()

    if Path(config_path).exists():
        with open(config_path) as f:
            raw = yaml.safe_load(f) or {}
        raw = _process_values(raw)

        settings.app_name = raw.get("app_name", settings.app_name)
        settings.debug = raw.get("debug", settings.debug)
        settings.log_level = raw.get("log_level", settings.log_level)
        settings.log_format = raw.get("log_format", settings.log_format)
        settings.timezone = raw.get("timezone", settings.timezone)

        if "queue" in raw:
            q = raw["queue"] or {}
            settings.queue = QueueConfig(
                backend=q.get("backend", "memory"),
                redis_url=q.get("redis_url", "redis://localhost:6379"),
                namespace=q.get("namespace", "jobs"),
                wait_time=float(q.get("wait_time", 5.0)),
            )

        if "webhook" in raw:
            wh = raw["webhook"] or {}
            settings.webhook = WebhookConfig(
                timeout=float(wh.get("timeout", 10.0)),
            )

        if "jobs" in raw:
            settings.jobs = JobsConfig(
                cron_entries=parse_cron_entries((raw["jobs"] or {}).get("cron_entries")),
            )

    _settings = settings
    return settings


def get_settings() -> Settings:
    """Return cached settings or load from default path."""
    global _settings
    if _settings is None:
        _settings = load_settings()
    return _settings


def load_jobs_config(settings: Settings = None) -> JobsConfig:
    """
    Cron entries for the scheduler bootstrap job.

    The JOB_CRON_ENTRIES environment variable ({"cron_entries": [...]} as JSON)
    takes precedence over the settings file. Invalid JSON yields an empty
    config so a bad variable never schedules anything unexpected.
    """
    raw = os.environ.get(CRON_ENTRIES_ENV, "")
    if raw:
        try:
            parsed = json.loads(raw)
        except ValueError as e:
            logger.warning("cron_entries_env_invalid", env=CRON_ENTRIES_ENV, error=str(e))
            return JobsConfig()
        if not isinstance(parsed, dict):
            logger.warning("cron_entries_env_invalid", env=CRON_ENTRIES_ENV,
                           error="expected a JSON object")
            return JobsConfig()
        return JobsConfig(cron_entries=parse_cron_entries(parsed.get("cron_entries")))

    settings = settings or get_settings()
    return settings.jobs
