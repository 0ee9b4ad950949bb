import json
from tt.common.logger import log
from tt.common.setup import PATHS

#region === Helpers and Paths ===

SETTINGS_PATH = PATHS.current / "settings.json"

# Default values for every setting. Anything missing from settings.json falls back to these.
_SETTINGS_DEFAULTS = {
    "server_url": "http://localhost:5000/api",
    "employee_id": None,
    "api_token": None,
    "request_timeout_s": 10.0,
    "refresh_interval_s": 5.0,
}

# Expected types, used to catch hand-edited settings that would blow up later.
_SETTINGS_TYPES = {
    "server_url": (str,),
    "employee_id": (str, type(None)),
    "api_token": (str, type(None)),
    "request_timeout_s": (int, float),
    "refresh_interval_s": (int, float),
}

# Intervals and timeouts, must be above zero.
_POSITIVE_SETTINGS = {"request_timeout_s", "refresh_interval_s"}

# Helper to return a truly fresh, default settings dict.
def build_default_settings():
    return dict(_SETTINGS_DEFAULTS)

#endregion === Helpers and Paths ===

#region === Saving and Loading Settings ===

# Loads settings from PATHS.current / settings.json, filling in defaults for anything missing or of the wrong type.
def load_settings():
    try:
        if not SETTINGS_PATH.exists():
            log.info(f"No existing settings.json found at '{SETTINGS_PATH}', using default settings.")
            settings = build_default_settings()
            save_settings(settings)
            return settings

        with open(SETTINGS_PATH, "r", encoding="utf-8") as f:
            loaded = json.load(f)
        if not isinstance(loaded, dict):
            raise TypeError(f"settings.json must contain an object, got {type(loaded).__name__}")

        settings = {}
        defaulted_values = set()
        for key, default in _SETTINGS_DEFAULTS.items():
            value = loaded.get(key, default)
            if key not in loaded or isinstance(value, bool) or not isinstance(value, _SETTINGS_TYPES[key]) \
                    or (key in _POSITIVE_SETTINGS and value <= 0):
                defaulted_values.add(key)
                value = default
            settings[key] = value

        # Log results
        if defaulted_values:
            log.warning(f"Loaded settings from '{SETTINGS_PATH}', but with missing or invalid values that were defaulted: {', '.join(sorted(defaulted_values))}")
        else:
            log.info(f"Successfully loaded settings from '{SETTINGS_PATH}'.")
        return settings
    # Fall back to defaults in case of error, but warn in log
    except (json.JSONDecodeError, OSError, TypeError):
        log.warning("Ran into an error while trying to load settings.json, falling back to default settings.",exc_info=True)
        return build_default_settings()

# Write the given settings to disk under PATHS.current / settings.json
def save_settings(settings):
    with open(SETTINGS_PATH, "w", encoding="utf-8") as f:
        json.dump(settings, f, indent=2)
    log.info(f"Successfully saved settings to '{SETTINGS_PATH}'")

#endregion === Saving and Loading Settings ===
