#!/usr/bin/env python3

"""
config.py

YAML settings for silence detection and long-form splitting.
"""

# Standard Library
import os

# PIP3 modules
import yaml

#============================================

CONFIG_VERSION = 1

#============================================

def default_config() -> dict:
	"""
	Build the default config dictionary.

	Returns:
		dict: Default configuration values.
	"""
	return {
		'dublib': CONFIG_VERSION,
		'settings': {
			'silence': {
				'min_silence_len': 1000,
				'silence_thresh': -16.0,
				'seek_step': 1,
				'keep_silence': 100,
			},
			'split': {
				'target_len': 1800.0,
				'window': 60.0,
			},
			'concurrency': {
				'enabled': False,
				'workers': 0,
			},
		},
	}

#============================================

def default_config_path(input_file: str) -> str:
	"""
	Config path that sits next to the audio input.
	"""
	return f"{input_file}.dublib.config.yaml"

#============================================

def coerce_bool(value, config_path: str, key_path: str) -> bool:
	"""
	Read a yes/no setting.

	Args:
		value: Raw YAML value, a bool, 0/1 or a word like "yes".
		config_path: Config file path used in error messages.
		key_path: Dotted setting name used in error messages.

	Returns:
		bool: Coerced boolean.
	"""
	if isinstance(value, bool):
		return value
	if isinstance(value, int):
		return bool(value)
	if isinstance(value, str):
		normalized = value.strip().lower()
		if normalized in ("true", "yes", "1", "on"):
			return True
		if normalized in ("false", "no", "0", "off"):
			return False
	raise RuntimeError(f"config {config_path}: {key_path} must be a boolean")

#============================================

def coerce_float(value, config_path: str, key_path: str) -> float:
	"""
	Read a numeric setting such as a dBFS threshold.

	Args:
		value: Raw YAML value; bools are rejected.
		config_path: Config file path used in error messages.
		key_path: Dotted setting name used in error messages.

	Returns:
		float: Coerced float.
	"""
	if isinstance(value, bool):
		raise RuntimeError(f"config {config_path}: {key_path} must be a number")
	if isinstance(value, (int, float)):
		return float(value)
	if isinstance(value, str):
		try:
			return float(value)
		except ValueError:
			pass
	raise RuntimeError(f"config {config_path}: {key_path} must be a number")

#============================================

def coerce_int(value, config_path: str, key_path: str) -> int:
	"""
	Read a whole number setting such as a length in ms.

	Args:
		value: Raw YAML value; bools are rejected, floats truncate.
		config_path: Config file path used in error messages.
		key_path: Dotted setting name used in error messages.

	Returns:
		int: Coerced int.
	"""
	if isinstance(value, bool):
		raise RuntimeError(f"config {config_path}: {key_path} must be an integer")
	if isinstance(value, int):
		return value
	if isinstance(value, float):
		return int(value)
	if isinstance(value, str):
		try:
			return int(float(value))
		except ValueError:
			pass
	raise RuntimeError(f"config {config_path}: {key_path} must be an integer")

#============================================

def build_config_text(config: dict) -> str:
	"""
	Build YAML text for the config file.

	Args:
		config: Config dictionary.

	Returns:
		str: YAML content.
	"""
	return yaml.safe_dump(config, sort_keys=False)

#============================================

def write_config_file(config_path: str, config: dict) -> None:
	"""
	Write a dublib config file, creating its directory.

	Args:
		config_path: Output file path.
		config: Config dictionary with the dublib version marker.
	"""
	text = build_config_text(config)
	os.makedirs(os.path.dirname(config_path) or '.', exist_ok=True)
	with open(config_path, 'w', encoding='utf-8') as handle:
		handle.write(text)
	return

#============================================

def load_config(config_path: str) -> dict:
	"""
	Load a config file from disk.

	Args:
		config_path: Config file path.

	Returns:
		dict: Parsed config dictionary.
	"""
	with open(config_path, 'r', encoding='utf-8') as handle:
		data = yaml.safe_load(handle)
	if not isinstance(data, dict):
		raise RuntimeError("config file must be a mapping")
	if data.get('dublib') != CONFIG_VERSION:
		raise RuntimeError(f"config file must set dublib: {CONFIG_VERSION}")
	return data

#============================================

def _section(overrides: dict, name: str, config_path: str) -> dict:
	section = overrides.get(name, {})
	if section is None:
		return {}
	if not isinstance(section, dict):
		raise RuntimeError(f"config {config_path}: settings.{name} must be a mapping")
	return section

#============================================

def build_settings(config: dict, config_path: str) -> dict:
	"""
	Normalize settings with defaults.

	Args:
		config: Raw config dictionary, None for pure defaults.
		config_path: Config file path used in error messages.

	Returns:
		dict: Flat settings dictionary.
	"""
	settings = default_config()['settings']
	overrides = {}
	if isinstance(config, dict):
		overrides = config.get('settings', {}) or {}
	if not isinstance(overrides, dict):
		raise RuntimeError(f"config {config_path}: settings must be a mapping")
	detection = _section(overrides, 'silence', config_path)
	split = _section(overrides, 'split', config_path)
	concurrency = _section(overrides, 'concurrency', config_path)
	min_silence_len = coerce_int(detection.get('min_silence_len',
		settings['silence']['min_silence_len']), config_path,
		"settings.silence.min_silence_len")
	silence_thresh = coerce_float(detection.get('silence_thresh',
		settings['silence']['silence_thresh']), config_path,
		"settings.silence.silence_thresh")
	seek_step = coerce_int(detection.get('seek_step',
		settings['silence']['seek_step']), config_path,
		"settings.silence.seek_step")
	keep_silence = detection.get('keep_silence', settings['silence']['keep_silence'])
	if not isinstance(keep_silence, bool):
		keep_silence = coerce_int(keep_silence, config_path,
			"settings.silence.keep_silence")
	target_len = coerce_float(split.get('target_len',
		settings['split']['target_len']), config_path,
		"settings.split.target_len")
	window = coerce_float(split.get('window',
		settings['split']['window']), config_path,
		"settings.split.window")
	concurrent_enabled = coerce_bool(concurrency.get('enabled',
		settings['concurrency']['enabled']), config_path,
		"settings.concurrency.enabled")
	workers = coerce_int(concurrency.get('workers',
		settings['concurrency']['workers']), config_path,
		"settings.concurrency.workers")
	if min_silence_len < 0:
		raise RuntimeError(f"config {config_path}: settings.silence.min_silence_len must not be negative")
	if seek_step < 1:
		raise RuntimeError(f"config {config_path}: settings.silence.seek_step must be at least 1")
	if silence_thresh > 0:
		raise RuntimeError(f"config {config_path}: settings.silence.silence_thresh must be <= 0 dBFS")
	if target_len <= 0 or window <= 0:
		raise RuntimeError(f"config {config_path}: settings.split values must be positive")
	if workers < 0:
		raise RuntimeError(f"config {config_path}: settings.concurrency.workers must not be negative")
	return {
		'min_silence_len': min_silence_len,
		'silence_thresh': silence_thresh,
		'seek_step': seek_step,
		'keep_silence': keep_silence,
		'target_len': target_len,
		'window': window,
		'concurrent': concurrent_enabled,
		'workers': workers,
	}
