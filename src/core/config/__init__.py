"""
Configuration subsystem for the season ranking engine.

Static configuration is loaded from environment variables (``.env``
supported through python-dotenv) by :class:`Config`.

Usage
-----
```python
from src.core.config import Config

capacity = Config.RANKING_GROUP_CAPACITY
if Config.is_production():
    logger.info("Running in production mode")
```
"""

from src.core.config.config import Config, Environment

__all__ = [
    "Config",
    "Environment",
]
