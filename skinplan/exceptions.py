"""
Domain errors. Everything else in the engine is total and returns values.
"""


class SkinPlanError(Exception):
    """Base class for engine errors."""


class ProfileNotFound(SkinPlanError):
    """Match was called without a profile. A caller contract violation, not retryable."""

    def __init__(self, user_id: str | None = None):
        self.user_id = user_id
        super().__init__(f"No skin profile found for user {user_id!r}")


class RuleConfigurationError(SkinPlanError):
    """The configured fallback rule cannot guarantee core steps. Raised at startup."""


class StaleResultConflict(SkinPlanError):
    """A stored result was built from an older profile version than the current one."""

    def __init__(self, stored_version: int, current_version: int):
        self.stored_version = stored_version
        self.current_version = current_version
        super().__init__(
            f"Stored recommendation is for profile version {stored_version}, "
            f"current version is {current_version}"
        )


class InvalidPlanDay(SkinPlanError):
    """A progress update referenced a day outside the 28-day plan."""

    def __init__(self, day):
        self.day = day
        super().__init__(f"Day {day!r} is not part of the 28-day plan")
