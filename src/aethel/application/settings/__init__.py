from aethel.application.settings.base_settings import (
    BaseSettings,
    BaseSettingsManager,
    FieldValidator,
    ValidationResult,
    validated_field,
)
from aethel.application.settings.timeline_settings import (
    TimelineSettings,
    TimelineSettingsManager,
    MOVEMENT_FREE,
    MOVEMENT_MAGNETIC,
)
