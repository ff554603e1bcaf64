import copy
import os

import yaml

DEFAULT_CONFIG_PATH = os.path.join('~', '.config', 'wifictl', 'config.yaml')

DEFAULT_CONFIG = {
    'wifi': {
        'interface': None,
        'mac_helper': None,
    },
    'connectivity': {
        'tcp_timeout': 5.0,
        'dns_timeout': 5.0,
        'overall_timeout': 6.0,
        'tcp_endpoints': None,    # None: packaged list
        'dns_domains': None,
    },
    'monitor': {
        'interval': 5.0,
        'console': True,
        'log_file': None,
        'hook': None,
        'hook_timeout': None,     # None: block until the hook exits
    },
    'logging': {
        'level': 'INFO',
        'file': None,
    },
}


def config_path(path: str | None = None) -> str:
    cfg_path = path or os.environ.get('WIFICTL_CONFIG') or DEFAULT_CONFIG_PATH
    return os.path.abspath(os.path.expanduser(cfg_path))


def _merge(base: dict, override: dict) -> dict:
    merged = copy.deepcopy(base)
    for key, value in (override or {}).items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = _merge(merged[key], value)
        else:
            merged[key] = value
    return merged


def load_config(path: str | None = None) -> dict:
    cfg_path = config_path(path)
    if not os.path.exists(cfg_path):
        return copy.deepcopy(DEFAULT_CONFIG)
    with open(cfg_path, 'r', encoding='utf-8') as fh:
        return _merge(DEFAULT_CONFIG, yaml.safe_load(fh) or {})


def save_config(cfg: dict, path: str | None = None) -> None:
    cfg_path = config_path(path)
    os.makedirs(os.path.dirname(cfg_path), exist_ok=True)
    with open(cfg_path, 'w', encoding='utf-8') as fh:
        yaml.safe_dump(cfg, fh)
