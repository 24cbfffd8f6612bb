#!/usr/bin/env python3

import os
from dublib.core import errors
from dublib.core import utils

FFMPEG_ENCODER = "ffmpeg"

#============================================

def get_encoder_name() -> str:
	if not utils.is_command_available(FFMPEG_ENCODER):
		raise errors.DecodeError(f"command `{FFMPEG_ENCODER}` not found")
	return FFMPEG_ENCODER

#============================================

def extract_audio(input_file: str, wav_path: str, samplerate: int = None,
	audio_mode: str = None) -> str:
	"""
	Transcode any ffmpeg readable file to 16-bit PCM wav.

	Args:
		input_file: Media file path.
		wav_path: Output wav path.
		samplerate: Optional output rate in Hz.
		audio_mode: None, "mono" or "stereo".

	Returns:
		str: Output wav path.
	"""
	cmd = [
		get_encoder_name(), "-y", "-hide_banner", "-loglevel", "error",
		"-i", input_file,
		"-vn", "-sn",
		"-acodec", "pcm_s16le",
	]
	if samplerate is not None:
		cmd += ["-ar", str(samplerate)]
	if audio_mode == "mono":
		cmd += ["-ac", "1"]
	elif audio_mode == "stereo":
		cmd += ["-ac", "2"]
	cmd.append(wav_path)
	utils.run_process(cmd, capture_output=True)
	if not os.path.isfile(wav_path):
		raise errors.DecodeError("audio extraction failed")
	return wav_path
