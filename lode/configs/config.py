from lode.configs.logging_init import logger
from lode.configs.settings_models import Settings

# Overwrite priority: environment variables > default values
settings = Settings()

logger.debug(f"Settings: {settings}")
