"""
Configuration subsystem.

- **config.py**: static settings from environment variables (.env support).
- **manager.py**: YAML-backed balance configuration (point table, flair
  tiers, spreadsheet grey dates) with dot-notation reads.

Usage
-----
```python
from src.core.config import Config, ConfigManager

token = Config.DISCORD_TOKEN
await ConfigManager.initialize()
last_bonus = ConfigManager.get("scoring.points.last_message", 20)
```
"""

from src.core.config.config import Config, Environment
from src.core.config.manager import ConfigManager, ConfigManagerError

__all__ = [
    "Config",
    "Environment",
    "ConfigManager",
    "ConfigManagerError",
]
