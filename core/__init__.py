from .settings import Settings, SettingsValidationError, SignerType, settings

__all__ = ["Settings", "SettingsValidationError", "SignerType", "settings"]
