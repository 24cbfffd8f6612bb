#!/usr/bin/env python3

"""
wav.py

PCM WAV container decode and encode. The core only sees the
(sample_width, frame_rate, channels, raw_pcm, format_tag) tuple.
"""

# Standard Library
import io
import wave

# local repo modules
from dublib.core import errors

#============================================

def decode_wav(data: bytes) -> tuple:
	"""
	Decode WAV container bytes.

	Args:
		data: Complete WAV file contents.

	Returns:
		tuple: (sample_width, frame_rate, channels, raw_pcm, 'pcm')
	"""
	try:
		with wave.open(io.BytesIO(data), 'rb') as wav_handle:
			channels = wav_handle.getnchannels()
			frame_rate = wav_handle.getframerate()
			sample_width = wav_handle.getsampwidth()
			total_frames = wav_handle.getnframes()
			raw_pcm = wav_handle.readframes(total_frames)
	except (wave.Error, EOFError) as exc:
		raise errors.DecodeError(f"invalid wav data: {exc}") from exc
	if channels <= 0:
		raise errors.DecodeError("audio channel count must be positive")
	if frame_rate <= 0:
		raise errors.DecodeError("audio sample rate must be positive")
	return (sample_width, frame_rate, channels, raw_pcm, 'pcm')

#============================================

def encode_wav(decoded: tuple) -> bytes:
	"""
	Encode a decoder tuple back into WAV container bytes.

	Args:
		decoded: (sample_width, frame_rate, channels, raw_pcm, format_tag)

	Returns:
		bytes: WAV file contents.
	"""
	sample_width, frame_rate, channels, raw_pcm, format_tag = decoded
	if format_tag != 'pcm':
		raise errors.DecodeError(f"unsupported format tag: {format_tag}")
	buffer = io.BytesIO()
	with wave.open(buffer, 'wb') as wav_handle:
		wav_handle.setnchannels(channels)
		wav_handle.setsampwidth(sample_width)
		wav_handle.setframerate(frame_rate)
		wav_handle.writeframes(raw_pcm)
	return buffer.getvalue()

#============================================

def read_wav_file(wav_path: str) -> tuple:
	with open(wav_path, 'rb') as handle:
		data = handle.read()
	return decode_wav(data)

#============================================

def write_wav_file(wav_path: str, decoded: tuple) -> str:
	data = encode_wav(decoded)
	with open(wav_path, 'wb') as handle:
		handle.write(data)
	return wav_path
