"""Runtime configuration read from environment variables."""
import os
from dataclasses import dataclass
from typing import Mapping, Optional

TRUE_VALUES = ('1', 'true', 'yes', 'on')


def _as_bool(value: Optional[str]) -> bool:
    return (value or '').strip().lower() in TRUE_VALUES


@dataclass
class Settings:
    """Configuration shared by the Lambda handler and the CLI."""
    events_table_name: str = 'downtown-events'
    venues_table_name: str = 'downtown-venues'
    sources_table_name: str = 'downtown-sources'
    aws_region: Optional[str] = None
    log_level: str = 'INFO'
    timeout_seconds: int = 30
    stale_hours: int = 48
    archive_grace_hours: int = 24
    enhanced: bool = False
    reminder_webhook_url: Optional[str] = None
    reminder_log_path: str = 'reminder-log.json'

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> 'Settings':
        """
        Build settings from the environment.

        Args:
            environ: Mapping to read instead of os.environ

        Returns:
            Settings with defaults for anything unset
        """
        env = os.environ if environ is None else environ
        return cls(
            events_table_name=env.get('EVENTS_TABLE_NAME', cls.events_table_name),
            venues_table_name=env.get('VENUES_TABLE_NAME', cls.venues_table_name),
            sources_table_name=env.get('SOURCES_TABLE_NAME', cls.sources_table_name),
            aws_region=env.get('AWS_REGION') or None,
            log_level=env.get('LOG_LEVEL', cls.log_level),
            timeout_seconds=int(env.get('TIMEOUT_SECONDS', cls.timeout_seconds)),
            stale_hours=int(env.get('STALE_HOURS', cls.stale_hours)),
            archive_grace_hours=int(env.get('ARCHIVE_GRACE_HOURS', cls.archive_grace_hours)),
            enhanced=_as_bool(env.get('ENHANCED')),
            reminder_webhook_url=env.get('REMINDER_WEBHOOK_URL') or None,
            reminder_log_path=env.get('REMINDER_LOG_PATH', cls.reminder_log_path),
        )
