"""Settings store backed by the ``system_setting`` table."""

from __future__ import annotations

from logging import getLogger
from typing import TYPE_CHECKING

from sqlalchemy.exc import SQLAlchemyError

from welfaregrid.config import THRESHOLDS, ThresholdKey
from welfaregrid.domain.errors import ConfigurationUnavailable, ResolutionConflict
from welfaregrid.domain.model import SystemSetting, utcnow

if TYPE_CHECKING:
    from welfaregrid.domain.ports import RegistryUnitOfWorkFactory

log = getLogger(__name__)


class SqlAlchemySettingsStore:
    """Read and write raw setting values, one short unit of work per call."""

    def __init__(self, unit_of_work: RegistryUnitOfWorkFactory) -> None:
        self._unit_of_work = unit_of_work

    def read(self, key: str) -> str | None:
        try:
            with self._unit_of_work() as uow:
                setting = uow.repositories.settings.get_by_key(key)
                return setting.value if setting is not None else None
        except (SQLAlchemyError, ResolutionConflict) as exc:
            raise ConfigurationUnavailable(f"Could not read setting {key}: {exc}") from exc

    def write(self, key: str, value: str, *, actor: str) -> None:
        try:
            with self._unit_of_work() as uow:
                settings = uow.repositories.settings
                setting = settings.get_by_key(key)
                if setting is None:
                    spec = THRESHOLDS.get(ThresholdKey(key)) if key in THRESHOLDS else None
                    description = spec.description if spec is not None else None
                    setting = SystemSetting(key=key, value=value, description=description)
                    settings.add(setting)
                setting.value = value
                setting.updated_by = actor
                setting.updated_at = utcnow()
                uow.commit()
        except (SQLAlchemyError, ResolutionConflict) as exc:
            raise ConfigurationUnavailable(f"Could not write setting {key}: {exc}") from exc
        log.debug("Stored setting %s=%s", key, value)
