from typing import Any, Dict

DEFAULT_USER_AGENT = "goatbot-feeds/0.1 (community feed relay)"


class FeedSettings:
    """Typed accessors over the ``feeds`` section of the application config.

    Values are coerced on read so a hand-edited YAML file with strings or
    nulls in it still produces usable numbers.
    """

    def __init__(self, data: Dict[str, Any] | None = None) -> None:
        self.data: Dict[str, Any] = data or {}

    @property
    def tick_seconds(self) -> float:
        return _positive_float(self.data.get("tick_seconds"), 60.0)

    @property
    def fetch_timeout_seconds(self) -> float:
        return _positive_float(self.data.get("fetch_timeout_seconds"), 20.0)

    @property
    def user_agent(self) -> str:
        return str(self.data.get("user_agent") or DEFAULT_USER_AGENT)

    @property
    def default_check_interval_minutes(self) -> int:
        return int(_positive_float(self.data.get("default_check_interval_minutes"), 15))

    @property
    def backoff_enabled(self) -> bool:
        backoff = self.data.get("backoff", {})
        return isinstance(backoff, dict) and bool(backoff.get("enabled", False))

    @property
    def backoff_max_exponent(self) -> int:
        backoff = self.data.get("backoff", {})
        if not isinstance(backoff, dict):
            return 5
        return int(_positive_float(backoff.get("max_exponent"), 5))


def _positive_float(value: Any, default: float) -> float:
    try:
        number = float(value)
    except (TypeError, ValueError):
        return default
    return number if number > 0 else default
