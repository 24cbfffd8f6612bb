#!/usr/bin/env python3

import os
import tempfile
from dublib.core import errors
from dublib.core import utils
from dublib.core.segment import AudioSegment
from dublib.media import ffmpeg
from dublib.media import wav

#============================================

def make_temp_wav() -> str:
	temp_handle, temp_path = tempfile.mkstemp(prefix="dublib-", suffix=".wav")
	os.close(temp_handle)
	return temp_path

#============================================

def load_file(path: str) -> AudioSegment:
	"""
	Load an audio file into an AudioSegment.

	WAV files are read directly. Anything else goes through ffmpeg when
	it is on PATH.

	Args:
		path: Audio file path.

	Returns:
		AudioSegment: Decoded audio.
	"""
	utils.ensure_file_exists(path)
	if path.lower().endswith('.wav'):
		return AudioSegment.from_decoded(wav.read_wav_file(path))
	if not utils.is_command_available(ffmpeg.FFMPEG_ENCODER):
		raise errors.DecodeError(
			f"cannot decode {path}: not a wav file and {ffmpeg.FFMPEG_ENCODER} is missing")
	temp_wav = make_temp_wav()
	try:
		ffmpeg.extract_audio(path, temp_wav)
		return AudioSegment.from_decoded(wav.read_wav_file(temp_wav))
	finally:
		os.remove(temp_wav)

#============================================

def export_wav(segment: AudioSegment, path: str) -> str:
	return wav.write_wav_file(path, segment.as_decoded())
