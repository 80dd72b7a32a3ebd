import os
import copy
import yaml

from .errors import ConfigurationError

DEFAULT_CONFIG = {
    'Paths': {
        'STAGING_PATHS': [],
        'DESTINATION_PATHS': [],
        'LOG_PATH': '/var/log/plot-mover.log'
    },
    'Settings': {
        'PLOT_SUFFIX': '.plot',
        'ROUND_INTERVAL': 300,
        'STOP_POLL_INTERVAL': 2,
        'DRAIN_POLL_INTERVAL': 5,
        'CHUNK_SIZE_MB': 1,
        'CLEANUP_TEMP_FILES': True,
        'MAX_LOG_SIZE_MB': 100,
        'BACKUP_COUNT': 1,
        'NOTIFICATIONS_ENABLED': False,
        'NOTIFICATION_URLS': [],
        'LOG_LEVEL': 'INFO'
    }
}

# Key names of the older chia_transfer.yaml layout, matched case-insensitively
# (files written by the Go mover use lowercase ``middletmps``/``finaldirs``)
LEGACY_PATH_KEYS = {
    'middletmps': 'STAGING_PATHS',
    'finaldirs': 'DESTINATION_PATHS',
}

def get_script_dir():
    return os.path.dirname(os.path.dirname(os.path.abspath(__file__)))

def _split_list(value):
    if isinstance(value, str):
        return [x.strip() for x in value.split(',') if x.strip()]
    if value is None:
        return []
    if not isinstance(value, list):
        return [str(value)]
    return value

def _to_bool(value):
    return str(value).strip().lower() in ('true', '1', 'yes', 'on')

def _find_config_file(config_path):
    if config_path:
        if not os.path.exists(config_path):
            raise ConfigurationError(f"Configuration file not found: {config_path}")
        return config_path

    candidates = [
        os.path.join(get_script_dir(), 'config.yml'),
        os.path.join(os.path.expanduser('~'), 'chia_transfer.yaml'),
    ]
    for candidate in candidates:
        if os.path.exists(candidate):
            return candidate
    return None

def load_config(config_path=None):
    config = copy.deepcopy(DEFAULT_CONFIG)

    final_config_path = _find_config_file(config_path)
    if final_config_path:
        with open(final_config_path, 'r') as config_file:
            try:
                file_config = yaml.safe_load(config_file) or {}
            except yaml.YAMLError as e:
                raise ConfigurationError(f"Invalid YAML in {final_config_path}: {e}") from e

        if not isinstance(file_config, dict):
            raise ConfigurationError(f"Configuration in {final_config_path} must be a mapping")

        for file_key, value in file_config.items():
            key = LEGACY_PATH_KEYS.get(str(file_key).lower())
            if key:
                config['Paths'][key] = value

        config['Paths'].update(file_config.get('Paths') or {})

        settings_update = dict(file_config.get('Settings') or {})
        if 'LOG_LEVEL' in settings_update:
            settings_update['LOG_LEVEL'] = str(settings_update['LOG_LEVEL']).strip().upper()
        config['Settings'].update(settings_update)

    env_mappings = {
        'STAGING_PATHS': ('Paths', 'STAGING_PATHS', _split_list),
        'DESTINATION_PATHS': ('Paths', 'DESTINATION_PATHS', _split_list),
        'LOG_PATH': ('Paths', 'LOG_PATH'),
        'PLOT_SUFFIX': ('Settings', 'PLOT_SUFFIX', str),
        'ROUND_INTERVAL': ('Settings', 'ROUND_INTERVAL', float),
        'STOP_POLL_INTERVAL': ('Settings', 'STOP_POLL_INTERVAL', float),
        'DRAIN_POLL_INTERVAL': ('Settings', 'DRAIN_POLL_INTERVAL', float),
        'CHUNK_SIZE_MB': ('Settings', 'CHUNK_SIZE_MB', float),
        'CLEANUP_TEMP_FILES': ('Settings', 'CLEANUP_TEMP_FILES', _to_bool),
        'MAX_LOG_SIZE_MB': ('Settings', 'MAX_LOG_SIZE_MB', int),
        'BACKUP_COUNT': ('Settings', 'BACKUP_COUNT', int),
        'NOTIFICATIONS_ENABLED': ('Settings', 'NOTIFICATIONS_ENABLED', _to_bool),
        'NOTIFICATION_URLS': ('Settings', 'NOTIFICATION_URLS', _split_list),
        'LOG_LEVEL': ('Settings', 'LOG_LEVEL', lambda x: x.strip().upper()),
    }

    for env_var, (section, key, *convert) in env_mappings.items():
        env_value = os.environ.get(env_var)
        if env_value is not None:
            if convert:
                try:
                    env_value = convert[0](env_value)
                except ValueError as e:
                    raise ConfigurationError(f"Invalid value for {env_var}: {env_value!r}") from e
            config[section][key] = env_value

    config['Paths']['STAGING_PATHS'] = _split_list(config['Paths']['STAGING_PATHS'])
    config['Paths']['DESTINATION_PATHS'] = _split_list(config['Paths']['DESTINATION_PATHS'])
    config['Settings']['NOTIFICATION_URLS'] = _split_list(config['Settings']['NOTIFICATION_URLS'])

    validate_config(config)
    return config

def validate_config(config):
    """
    Check the path lists and numeric settings.

    Raises:
        ConfigurationError: On empty lists, duplicated or missing paths,
            or non-positive intervals
    """
    staging = config['Paths']['STAGING_PATHS']
    destinations = config['Paths']['DESTINATION_PATHS']

    missing = [name for name, paths in (('STAGING_PATHS', staging), ('DESTINATION_PATHS', destinations))
               if not paths]
    if missing:
        raise ConfigurationError(f"Required paths not configured: {', '.join(missing)}. "
                                 f"Please set via config.yml or environment variables.")

    seen = {}
    for path in list(staging) + list(destinations):
        normalized = os.path.normpath(os.path.abspath(str(path)))
        if normalized in seen:
            raise ConfigurationError(f"Path configured more than once: {path} (same as {seen[normalized]})")
        seen[normalized] = path
        if not os.path.isdir(normalized):
            raise ConfigurationError(f"Configured path is not an existing directory: {path}")

    config['Paths']['STAGING_PATHS'] = [os.path.normpath(os.path.abspath(str(p))) for p in staging]
    config['Paths']['DESTINATION_PATHS'] = [os.path.normpath(os.path.abspath(str(p))) for p in destinations]

    settings = config['Settings']
    for key in ('ROUND_INTERVAL', 'STOP_POLL_INTERVAL', 'DRAIN_POLL_INTERVAL', 'CHUNK_SIZE_MB'):
        try:
            value = float(settings[key])
        except (TypeError, ValueError) as e:
            raise ConfigurationError(f"{key} must be a number, got {settings[key]!r}") from e
        if value <= 0:
            raise ConfigurationError(f"{key} must be greater than 0")
        settings[key] = value

    if not settings.get('PLOT_SUFFIX'):
        raise ConfigurationError("PLOT_SUFFIX must not be empty")
