import structlog
from django.apps import AppConfig


class ProfileCollectorConfig(AppConfig):
    """Configuration for the profile_collector app."""

    default_auto_field = "django.db.models.BigAutoField"
    name = "profile_collector"
    verbose_name = "Profile collector"

    def ready(self) -> None:
        """Report whether request profiling can run in this process.

        Called once Django is fully loaded.
        """
        from profile_collector.collector import get_collector

        logger = structlog.get_logger(__name__)
        try:
            collector = get_collector()
        except Exception:
            logger.exception("Invalid PROFILE_COLLECTOR setting, request profiling is off")
            return

        if not collector.is_enabled():
            logger.debug("Request profiling disabled")
            return

        if not collector.is_supported():
            logger.warning(
                "Request profiling is enabled but cannot run: no usable store or profiling engine",
                database=collector.config.database,
            )
            return

        logger.info(
            "Request profiling enabled",
            ratio=collector.config.ratio,
            database=collector.config.database,
        )
