"""
Settings Service

Read/write access to the user settings consumed by the motion pipeline.
Each section of ControllerSettings is stored as a JSON document in the
system_settings key/value table under "settings.<section>".

The pipeline only ever writes one thing: clearing a push subscription the
push service reported as gone.
"""
import json
import logging
from typing import Any, Dict

from pydantic import ValidationError

from motion_relay.core.database import get_db_session
from motion_relay.models.system_setting import SystemSetting
from motion_relay.schemas.settings import ControllerSettings, SETTINGS_SECTIONS

logger = logging.getLogger(__name__)

SETTINGS_KEY_PREFIX = "settings."


class SettingsService:
    """
    Settings store backed by the system_settings table.

    Missing or unreadable sections fall back to their defaults so a
    half-configured installation still processes motion events.
    """

    def __init__(self, session_factory=None):
        """
        Initialize SettingsService

        Args:
            session_factory: Optional SQLAlchemy session factory (for testing).
                             Defaults to SessionLocal from motion_relay.core.database.
        """
        self.session_factory = session_factory

    @staticmethod
    def _key(section: str) -> str:
        return f"{SETTINGS_KEY_PREFIX}{section}"

    def _read_sections(self) -> Dict[str, Any]:
        sections: Dict[str, Any] = {}
        with get_db_session(self.session_factory) as db:
            rows = db.query(SystemSetting).filter(
                SystemSetting.key.in_([self._key(s) for s in SETTINGS_SECTIONS])
            ).all()

            for row in rows:
                section = row.key[len(SETTINGS_KEY_PREFIX):]
                try:
                    sections[section] = json.loads(row.value)
                except (json.JSONDecodeError, TypeError):
                    logger.error(f"Settings section '{section}' is not valid JSON, using defaults")

        return sections

    def get_settings(self) -> ControllerSettings:
        """
        Load all settings sections.

        Returns:
            ControllerSettings with defaults for missing sections
        """
        sections = self._read_sections()

        try:
            return ControllerSettings.model_validate(sections)
        except ValidationError as e:
            logger.error(
                f"Stored settings failed validation, falling back per section: {e}",
                extra={"error_count": e.error_count()}
            )

        # Keep whatever sections are valid on their own
        valid = {}
        for name, data in sections.items():
            try:
                ControllerSettings.model_validate({name: data})
                valid[name] = data
            except ValidationError:
                logger.warning(f"Ignoring invalid settings section '{name}'")
        return ControllerSettings.model_validate(valid)

    def get_section(self, section: str) -> Any:
        """Return one validated settings section model."""
        if section not in SETTINGS_SECTIONS:
            raise KeyError(f"Unknown settings section: {section}")
        return getattr(self.get_settings(), section)

    def update_section(self, section: str, data: Dict[str, Any]) -> Any:
        """
        Validate and store a settings section, replacing the previous one.

        Args:
            section: Section name (general, recordings, notifications, webhook, telegram, webpush)
            data: Section content

        Returns:
            The validated section model

        Raises:
            KeyError: If the section name is unknown
            ValidationError: If the data does not match the section schema
        """
        if section not in SETTINGS_SECTIONS:
            raise KeyError(f"Unknown settings section: {section}")

        model = ControllerSettings.model_fields[section].annotation.model_validate(data)
        value = model.model_dump_json()

        with get_db_session(self.session_factory) as db:
            row = db.query(SystemSetting).filter(SystemSetting.key == self._key(section)).first()
            if row:
                row.value = value
            else:
                db.add(SystemSetting(key=self._key(section), value=value))
            db.commit()

        logger.debug(f"Settings section '{section}' updated")
        return model

    def clear_push_subscription(self) -> None:
        """Remove the stored push subscription, keeping the VAPID key pair."""
        webpush = self.get_section("webpush")
        self.update_section("webpush", {
            "pub_key": webpush.pub_key,
            "priv_key": webpush.priv_key,
            "subscription": None,
        })
        logger.info("Push subscription removed from settings")

