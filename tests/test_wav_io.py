#!/usr/bin/env python3

"""
Pytest coverage for wav decoding and file loading.
"""

# Standard Library
import os
import shutil
import subprocess
import sys

# PIP3 modules
import pytest

REPO_ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))
if REPO_ROOT not in sys.path:
	sys.path.insert(0, REPO_ROOT)

# local repo modules
from dublib.core import errors
from dublib.core import utils
from dublib.core.segment import AudioSegment
from dublib.media import loader
from dublib.media import wav
from pcm_utils import noise_segment

#============================================

HAVE_FFMPEG = shutil.which("ffmpeg") is not None

#============================================

def test_encode_decode_tuple() -> None:
	seg = noise_segment(200, seed=4, channels=2)
	decoded = wav.decode_wav(wav.encode_wav(seg.as_decoded()))
	assert decoded == (2, 8000, 2, seg.raw_data, 'pcm')

#============================================

def test_decode_rejects_garbage() -> None:
	with pytest.raises(errors.DecodeError):
		wav.decode_wav(b'not a wav file at all')
	with pytest.raises(errors.DecodeError):
		wav.encode_wav((2, 8000, 1, b'', 'flac'))

#============================================

def test_load_and_export_wav(tmp_path) -> None:
	seg = noise_segment(300, seed=8)
	wav_path = str(tmp_path / "clip.wav")
	assert loader.export_wav(seg, wav_path) == wav_path
	assert loader.load_file(wav_path) == seg

#============================================

def test_load_24bit_wav(tmp_path) -> None:
	wav_path = str(tmp_path / "deep.wav")
	raw = bytes([0x01, 0x02, 0x03, 0x00, 0x00, 0x80])
	wav.write_wav_file(wav_path, (3, 8000, 1, raw, 'pcm'))
	seg = loader.load_file(wav_path)
	assert seg.sample_width == 4
	assert seg.frame_count() == 2

#============================================

def test_load_missing_file(tmp_path) -> None:
	with pytest.raises(errors.DecodeError):
		loader.load_file(str(tmp_path / "missing.wav"))

#============================================

def test_non_wav_needs_ffmpeg(tmp_path, monkeypatch) -> None:
	flac_path = tmp_path / "clip.flac"
	flac_path.write_bytes(b'fLaC')
	monkeypatch.setattr(utils, "is_command_available", lambda name: False)
	with pytest.raises(errors.DecodeError):
		loader.load_file(str(flac_path))

#============================================

@pytest.mark.skipif(not HAVE_FFMPEG, reason="missing tools: ffmpeg")
def test_load_flac_through_ffmpeg(tmp_path) -> None:
	seg = noise_segment(500, seed=12)
	wav_path = str(tmp_path / "source.wav")
	flac_path = str(tmp_path / "source.flac")
	loader.export_wav(seg, wav_path)
	subprocess.run(["ffmpeg", "-y", "-loglevel", "error", "-i", wav_path, flac_path],
		check=True, stdout=subprocess.DEVNULL, stderr=subprocess.DEVNULL)
	utils.set_quiet_mode(True)
	try:
		loaded = loader.load_file(flac_path)
	finally:
		utils.set_quiet_mode(False)
	assert isinstance(loaded, AudioSegment)
	assert loaded.frame_rate == 8000
	assert loaded.raw_data == seg.raw_data
