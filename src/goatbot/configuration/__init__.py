"""
Configuration for the goatbot runtime.

- **app_configuration.py**: YAML-backed ``AppConfig`` loaded from
  ``config/app_config.yml`` and shared as ``app_config``.
- **feed_settings.py**: typed view of the ``feeds`` section (tick period,
  fetch timeout, client identifier, backoff).
"""
