"""
Base Settings

Dataclass-based settings with field validation, plus a QObject manager that
persists one settings namespace through a PreferencesRepository.

Usage:
    @dataclass
    class EditorSettings(BaseSettings):
        zoom: float = validated_field(1.0, min_value=0.1, max_value=10.0)

    class EditorSettingsManager(BaseSettingsManager):
        NAMESPACE = "editor"
        SETTINGS_CLASS = EditorSettings
"""
import re
from dataclasses import dataclass, asdict, fields, field
from enum import Enum
from typing import Any, Callable, Dict, List, Optional, Type, Union, TYPE_CHECKING

from PyQt6.QtCore import QObject, pyqtSignal

from aethel.utils.message import Log

if TYPE_CHECKING:
    from aethel.infrastructure.persistence.preferences_repository import PreferencesRepository


# =============================================================================
# Validation Framework
# =============================================================================

@dataclass
class ValidationResult:
    """
    Result of validating settings.

    Attributes:
        valid: True if all validations passed
        errors: List of error messages (validation failures)
        warnings: List of warning messages (non-blocking issues)
    """
    valid: bool = True
    errors: List[str] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)

    def add_error(self, message: str):
        self.errors.append(message)
        self.valid = False

    def add_warning(self, message: str):
        self.warnings.append(message)

    def merge(self, other: 'ValidationResult'):
        if not other.valid:
            self.valid = False
        self.errors.extend(other.errors)
        self.warnings.extend(other.warnings)

    def __bool__(self) -> bool:
        return self.valid


@dataclass
class FieldValidator:
    """
    Validation rules for a settings field, stored in field metadata.

    custom signature: (value, field_name) -> Optional[str] error message
    """
    min_value: Optional[Union[int, float]] = None
    max_value: Optional[Union[int, float]] = None
    choices: Optional[List[Any]] = None
    pattern: Optional[str] = None
    pattern_message: Optional[str] = None
    required: bool = False
    custom: Optional[Callable[[Any, str], Optional[str]]] = None
    allow_none: bool = True

    def validate(self, value: Any, field_name: str) -> ValidationResult:
        result = ValidationResult()

        if value is None:
            if not self.allow_none or self.required:
                result.add_error(f"{field_name}: Required field cannot be empty")
            return result

        if self.required and isinstance(value, str) and not value.strip():
            result.add_error(f"{field_name}: Required field cannot be empty")
            return result

        if isinstance(value, (int, float)) and not isinstance(value, bool):
            if self.min_value is not None and value < self.min_value:
                result.add_error(f"{field_name}: Value {value} is below minimum {self.min_value}")
            if self.max_value is not None and value > self.max_value:
                result.add_error(f"{field_name}: Value {value} is above maximum {self.max_value}")

        if self.choices is not None:
            check_value = value.value if isinstance(value, Enum) else value
            valid_choices = [c.value if isinstance(c, Enum) else c for c in self.choices]
            if check_value not in valid_choices:
                result.add_error(f"{field_name}: Value '{value}' not in allowed choices: {valid_choices}")

        if self.pattern is not None and isinstance(value, str):
            if not re.match(self.pattern, value):
                result.add_error(f"{field_name}: {self.pattern_message or 'Value does not match required pattern'}")

        if self.custom is not None:
            error = self.custom(value, field_name)
            if error:
                result.add_error(error)

        return result


def validated_field(
    default: Any = None,
    *,
    min_value: Optional[Union[int, float]] = None,
    max_value: Optional[Union[int, float]] = None,
    choices: Optional[List[Any]] = None,
    pattern: Optional[str] = None,
    pattern_message: Optional[str] = None,
    required: bool = False,
    allow_none: bool = True,
    custom: Optional[Callable[[Any, str], Optional[str]]] = None,
    **kwargs
):
    """
    dataclasses.field() with a FieldValidator in its metadata.

    Example:
        zoom_step: float = validated_field(1.2, min_value=1.01, max_value=4.0)
    """
    validator = FieldValidator(
        min_value=min_value,
        max_value=max_value,
        choices=choices,
        pattern=pattern,
        pattern_message=pattern_message,
        required=required,
        allow_none=allow_none,
        custom=custom,
    )
    metadata = kwargs.pop('metadata', {})
    metadata['validator'] = validator
    return field(default=default, metadata=metadata, **kwargs)


@dataclass
class BaseSettings:
    """
    Base class for settings dataclasses.

    Every field needs a default so stored settings written by older versions
    still load (missing keys fall back to defaults, unknown keys are ignored).
    """

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'BaseSettings':
        valid_keys = {f.name for f in fields(cls)}
        merged = asdict(cls())
        merged.update({k: v for k, v in data.items() if k in valid_keys})
        return cls(**merged)

    def validate(self) -> ValidationResult:
        """Validate every field that carries a FieldValidator."""
        result = ValidationResult()
        for f in fields(self):
            validator = f.metadata.get('validator') if f.metadata else None
            if isinstance(validator, FieldValidator):
                result.merge(validator.validate(getattr(self, f.name), f.name))
        return result

    def validate_field(self, field_name: str) -> ValidationResult:
        """
        Validate a single field by name.

        Raises:
            AttributeError: If field doesn't exist
        """
        for f in fields(self):
            if f.name == field_name:
                validator = f.metadata.get('validator') if f.metadata else None
                if isinstance(validator, FieldValidator):
                    return validator.validate(getattr(self, field_name), field_name)
                return ValidationResult()
        raise AttributeError(f"Field '{field_name}' not found in {self.__class__.__name__}")

    def is_valid(self) -> bool:
        return self.validate().valid


class BaseSettingsManager(QObject):
    """
    Persists one settings namespace.

    Subclasses define NAMESPACE and SETTINGS_CLASS. Values are validated
    before they are applied; rejected values emit validation_failed and leave
    the settings unchanged. Changes are saved immediately.
    """

    settings_changed = pyqtSignal(str)  # Setting name that changed
    settings_loaded = pyqtSignal()
    validation_failed = pyqtSignal(object)  # ValidationResult
    settings_save_failed = pyqtSignal(str)  # Error message

    NAMESPACE: str = ""
    SETTINGS_CLASS: Type[BaseSettings] = BaseSettings

    def __init__(self, preferences_repo: Optional['PreferencesRepository'] = None, parent=None):
        """
        Args:
            preferences_repo: Repository for persistence (if None, settings are in-memory only)
            parent: Parent QObject
        """
        super().__init__(parent)
        if not self.NAMESPACE:
            raise ValueError(f"{self.__class__.__name__} must define NAMESPACE")

        self._preferences_repo = preferences_repo
        self._settings: BaseSettings = self.SETTINGS_CLASS()
        self._loaded = False
        self._load_from_storage()

    @property
    def _storage_key(self) -> str:
        return f"{self.NAMESPACE}.settings"

    @property
    def settings(self) -> BaseSettings:
        return self._settings

    def get(self, key: str, default: Any = None) -> Any:
        return getattr(self._settings, key, default)

    def set(self, key: str, value: Any) -> bool:
        """
        Set a setting value by key.

        Returns True if the setting was changed.
        """
        if not hasattr(self._settings, key):
            raise AttributeError(f"Unknown setting '{key}' in {self.NAMESPACE}")
        old_value = getattr(self._settings, key)
        if old_value == value:
            return False

        setattr(self._settings, key, value)
        result = self._settings.validate()
        if not result.valid:
            setattr(self._settings, key, old_value)
            Log.warning(f"{self.__class__.__name__}: rejected {key}={value!r}: {'; '.join(result.errors)}")
            self.validation_failed.emit(result)
            return False

        self._save()
        self.settings_changed.emit(key)
        return True

    def get_all(self) -> Dict[str, Any]:
        return self._settings.to_dict()

    def reset_to_defaults(self):
        self._settings = self.SETTINGS_CLASS()
        self._save()
        self.settings_loaded.emit()

    def _load_from_storage(self):
        if not self._preferences_repo:
            self._loaded = True
            return

        stored = self._preferences_repo.get(self._storage_key, {})
        if stored and isinstance(stored, dict):
            candidate = self.SETTINGS_CLASS.from_dict(stored)
            result = candidate.validate()
            if result.valid:
                self._settings = candidate
            else:
                Log.warning(
                    f"{self.__class__.__name__}: stored settings invalid, using defaults: "
                    f"{'; '.join(result.errors)}"
                )
                self.validation_failed.emit(result)
        self._loaded = True
        self.settings_loaded.emit()

    def _save(self):
        if not self._preferences_repo:
            return
        try:
            self._preferences_repo.set(self._storage_key, self._settings.to_dict())
        except Exception as e:
            Log.error(f"{self.__class__.__name__}: Failed to save settings: {e}")
            self.settings_save_failed.emit(str(e))

    def is_loaded(self) -> bool:
        return self._loaded

    def validate(self) -> ValidationResult:
        return self._settings.validate()
