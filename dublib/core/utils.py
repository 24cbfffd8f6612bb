#!/usr/bin/env python3

import os
import shlex
import shutil
import subprocess
from fractions import Fraction
from dublib.core import errors

_QUIET_MODE = False

#============================================

def set_quiet_mode(value: bool) -> None:
	global _QUIET_MODE
	_QUIET_MODE = bool(value)
	return

#============================================

def is_quiet_mode() -> bool:
	return _QUIET_MODE

#============================================

def report(message: str) -> None:
	if not is_quiet_mode():
		print(message)
	return

#============================================

def run_process(cmd: list, capture_output: bool = True) -> subprocess.CompletedProcess:
	"""
	Run a subprocess command.

	Args:
		cmd: Command list to execute.
		capture_output: Capture stdout and stderr when True.

	Returns:
		subprocess.CompletedProcess: The completed process.
	"""
	showcmd = shlex.join(cmd)
	report(f"CMD: '{showcmd}'")
	proc = subprocess.run(cmd, capture_output=capture_output, text=True)
	if proc.returncode != 0:
		stderr_text = (proc.stderr or "").strip()
		raise RuntimeError(f"command failed: {showcmd}\n{stderr_text}")
	return proc

#============================================

def is_command_available(cmd_name: str) -> bool:
	"""
	Check whether an external command is on PATH.

	Args:
		cmd_name: Command to locate.

	Returns:
		bool: True when the command can be run.
	"""
	return shutil.which(cmd_name) is not None

#============================================

def ensure_file_exists(filepath: str) -> None:
	"""
	Raise DecodeError when an input audio file is missing.

	Args:
		filepath: Path to check.
	"""
	if not os.path.isfile(filepath):
		raise errors.DecodeError(f"file not found: {filepath}")
	return

#============================================

def round_half_up_fraction(value: Fraction) -> int:
	"""
	Round a non-negative Fraction to int, ties going up.
	"""
	numerator = value.numerator
	denominator = value.denominator
	whole = numerator // denominator
	remainder = numerator - (whole * denominator)
	if remainder * 2 >= denominator:
		return whole + 1
	return whole

#============================================

def milliseconds_to_seconds(ms: int) -> float:
	return ms / 1000.0
