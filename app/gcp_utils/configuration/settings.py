"""gcp-utils configuration settings - main aggregator."""

from pydantic_settings import BaseSettings, SettingsConfigDict

from gcp_utils.configuration.google import (
    BigQuerySettings,
    FirestoreSettings,
    GoogleAuthSettings,
)


class Settings(BaseSettings):
    """Library configuration settings - main aggregator.

    Aggregates the Google Cloud sub-settings into a single configuration object.

    Environment Variables:
        ENVIRONMENT: Deployment environment name ("production" enables JSON logs)
        LOG_LEVEL: Logging level (DEBUG, INFO, WARNING, ERROR)

    Example:
        ```python
        from gcp_utils.configuration import get_settings

        settings = get_settings()
        page_size = settings.firestore.query_page_size
        if settings.is_production:
            ...
        ```
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        case_sensitive=True,
        extra="ignore",
    )

    ENVIRONMENT: str = "development"
    LOG_LEVEL: str = "INFO"

    bigquery: BigQuerySettings
    firestore: FirestoreSettings
    google_auth: GoogleAuthSettings

    @property
    def is_production(self) -> bool:
        """Check if the library runs in a production deployment."""
        return self.ENVIRONMENT.lower() == "production"

    def __init__(self, **kwargs):
        """Initialize Settings with automatic subsettings instantiation.

        Args:
            **kwargs: Optional overrides for specific settings sections.
        """
        settings_map = {
            "bigquery": BigQuerySettings,
            "firestore": FirestoreSettings,
            "google_auth": GoogleAuthSettings,
        }

        for key, settings_class in settings_map.items():
            if key not in kwargs:
                kwargs[key] = settings_class()

        super().__init__(**kwargs)
