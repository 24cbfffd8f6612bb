#!/usr/bin/env python3

"""
Pytest coverage for AudioSegment.
"""

# Standard Library
import concurrent.futures
import dataclasses
import math
import os
import sys

# PIP3 modules
import numpy
import pytest

REPO_ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))
if REPO_ROOT not in sys.path:
	sys.path.insert(0, REPO_ROOT)

# local repo modules
from dublib.core import errors
from dublib.core.segment import AudioSegment
from dublib.core.segment import OverlayConfig
from dublib.core.segment import sync_segments
from pcm_utils import constant_segment, noise_segment, pcm16, samples16

#============================================

def test_24bit_input_is_widened() -> None:
	"""
	3-byte samples gain a low-order byte that carries the sign.
	"""
	data = bytes([0x01, 0x02, 0x03, 0x00, 0x00, 0x80])
	seg = AudioSegment(data, sample_width=3, frame_rate=8000, channels=1)
	assert seg.sample_width == 4
	assert seg.raw_data == bytes([0x00, 0x01, 0x02, 0x03, 0xFF, 0x00, 0x00, 0x80])
	assert seg.frame_count() == 2

#============================================

def test_construction_errors() -> None:
	with pytest.raises(errors.MalformedBuffer):
		AudioSegment(b'\x00\x00\x00', sample_width=2, frame_rate=8000, channels=1)
	with pytest.raises(errors.MalformedBuffer):
		AudioSegment(b'\x00\x00', sample_width=2, frame_rate=8000, channels=2)
	with pytest.raises(errors.InvalidWidth):
		AudioSegment(b'', sample_width=5, frame_rate=8000, channels=1)
	with pytest.raises(errors.UnsupportedConversion):
		AudioSegment(b'', sample_width=2, frame_rate=8000, channels=0)

#============================================

def test_duration_and_frame_counts() -> None:
	seg = constant_segment(2000, 100)
	assert seg.frame_count() == 16000
	assert seg.duration() == 2000
	assert seg.duration_seconds() == pytest.approx(2.0)
	assert seg.frame_count_in(500) == pytest.approx(4000.0)
	assert seg.frame_count_in(10 ** 6) == pytest.approx(16000.0)
	half_ms = AudioSegment(pcm16([1]), sample_width=2, frame_rate=2000, channels=1)
	assert half_ms.duration() == 1
	assert AudioSegment(pcm16([0] * 44100), 2, 44100, 1).duration() == 1000

#============================================

def test_empty_and_silent() -> None:
	empty = AudioSegment.empty()
	assert empty.duration() == 0
	assert empty.rms() == 0.0
	assert empty.dbfs() == -math.inf
	silent = AudioSegment.silent(1000, frame_rate=8000)
	assert silent.frame_count() == 8000
	assert silent.raw_data == bytes(16000)
	assert silent.sample_width == 2

#============================================

def test_decoded_tuple_round_trip() -> None:
	seg = constant_segment(100, 42, channels=2)
	assert AudioSegment.from_decoded(seg.as_decoded()) == seg
	with pytest.raises(errors.DecodeError):
		AudioSegment.from_decoded((2, 8000, 1, b'', 'mp3'))

#============================================

def test_slice_bounds_and_errors() -> None:
	seg = constant_segment(500, 100)
	assert seg.slice(100, 200).frame_count() == 800
	assert seg.slice(0, 10 ** 6).raw_data == seg.raw_data
	assert seg.slice(600, 700).frame_count() == 0
	with pytest.raises(errors.InvalidRange):
		seg.slice(200, 100)
	with pytest.raises(errors.InvalidRange):
		seg.slice(-1, 10)

#============================================

def test_slice_pads_rounding_gap_with_silence() -> None:
	"""
	A duration rounded up past the data is filled with silent frames.
	"""
	seg = AudioSegment(numpy.full(44080, 1000, dtype='<i2').tobytes(),
		sample_width=2, frame_rate=44100, channels=1)
	assert seg.duration() == 1000
	padded = seg.slice(0, 1000)
	values = samples16(padded.raw_data)
	assert len(values) == 44100
	assert set(values[:44080]) == {1000}
	assert set(values[44080:]) == {0}

#============================================

def test_slice_append_partition() -> None:
	seg = noise_segment(1000, seed=3)
	for start, end in ((0, 1000), (120, 480), (333, 334), (999, 1000)):
		joined = seg.slice(0, start).append(seg.slice(start, end))
		assert joined.raw_data == seg.slice(0, end).raw_data

#============================================

def test_append_syncs_formats() -> None:
	mono = constant_segment(100, 1000)
	stereo_8bit = AudioSegment(bytes([128]) * 3200, sample_width=1,
		frame_rate=16000, channels=2)
	joined = mono.append(stereo_8bit)
	assert joined.channels == 2
	assert joined.frame_rate == 16000
	assert joined.sample_width == 2
	assert joined.frame_count() == 1599 + 1600
	assert joined.duration() == 200

#============================================

def test_sync_segments_picks_largest_format() -> None:
	first = AudioSegment(bytes([128]) * 80, sample_width=1, frame_rate=8000, channels=1)
	second = constant_segment(10, 5, frame_rate=16000, channels=2)
	synced = sync_segments(first, second)
	for seg in synced:
		assert (seg.sample_width, seg.frame_rate, seg.channels) == (2, 16000, 2)
	assert synced[1] is second

#============================================

def test_apply_gain_repeat_reverse() -> None:
	seg = constant_segment(100, 10000)
	quieter = seg.apply_gain(-6.0)
	assert set(samples16(quieter.raw_data)) == {5012}
	assert seg.repeat(3).duration() == 300
	assert seg.repeat(0).frame_count() == 0
	ramp = AudioSegment(pcm16([1, 2, 3]), 2, 8000, 1)
	assert samples16(ramp.reverse().raw_data) == [3, 2, 1]

#============================================

def test_dunder_operators() -> None:
	seg = constant_segment(500, 1000)
	assert len(seg) == 500
	assert seg[100:200].duration() == 100
	assert seg[:100] == seg.slice(0, 100)
	assert seg[10].duration() == 1
	assert (seg + 6) == seg.apply_gain(6)
	assert (seg * 3).duration() == 1500
	assert (seg + seg) == seg.append(seg)
	assert hash(seg) == hash(constant_segment(500, 1000))
	assert "duration=500ms" in repr(seg)

#============================================

def test_fork_identity_and_errors() -> None:
	seg = constant_segment(100, 100)
	assert seg.fork_with_sample_width(2) is seg
	assert seg.fork_with_frame_rate(8000) is seg
	assert seg.fork_with_channels(1) is seg
	with pytest.raises(errors.UnsupportedConversion):
		seg.fork_with_channels(3)
	with pytest.raises(errors.UnsupportedConversion):
		seg.fork_with_frame_rate(0)

#============================================

def test_fork_sample_width_handles_unsigned_8bit() -> None:
	"""
	8-bit storage is unsigned, so midpoint 128 maps to 16-bit zero.
	"""
	unsigned = AudioSegment(bytes([128, 192, 64]), 1, 8000, 1)
	widened = unsigned.fork_with_sample_width(2)
	assert samples16(widened.raw_data) == [0, 16384, -16384]
	narrowed = widened.fork_with_sample_width(1)
	assert narrowed.raw_data == bytes([128, 192, 64])
	seg = noise_segment(100, seed=1)
	round_trip = seg.fork_with_sample_width(4).fork_with_sample_width(2)
	assert round_trip == seg

#============================================

def test_fork_frame_rate_keeps_duration() -> None:
	seg = constant_segment(1000, 1000)
	faster = seg.fork_with_frame_rate(16000)
	assert faster.frame_rate == 16000
	assert faster.frame_count() == 15999
	assert faster.duration() == 1000

#============================================

def test_fork_channels() -> None:
	mono = AudioSegment(pcm16([100, -50]), 2, 8000, 1)
	stereo = mono.fork_with_channels(2)
	assert samples16(stereo.raw_data) == [100, 100, -50, -50]
	mixed = AudioSegment(pcm16([100, 300]), 2, 8000, 2).fork_with_channels(1)
	assert samples16(mixed.raw_data) == [200]

#============================================

def test_overlay_loop_to_end() -> None:
	base = constant_segment(500, 1000)
	tone = constant_segment(100, 2000)
	result = base.overlay(tone, OverlayConfig(loop_to_end=True))
	assert result.duration() == 500
	assert set(samples16(result.raw_data)) == {3000}

#============================================

def test_overlay_position_and_loop_count() -> None:
	base = constant_segment(500, 1000)
	tone = constant_segment(100, 2000)
	placed = samples16(base.overlay(tone, OverlayConfig(position=100)).raw_data)
	assert set(placed[:800]) == {1000}
	assert set(placed[800:1600]) == {3000}
	assert set(placed[1600:]) == {1000}
	twice = samples16(base.overlay(tone, OverlayConfig(loop_count=2)).raw_data)
	assert set(twice[:1600]) == {3000}
	assert set(twice[1600:]) == {1000}

#============================================

def test_overlay_gain_and_truncation() -> None:
	base = constant_segment(500, 1000)
	half_db = 20 * math.log10(0.5)
	ducked = base.overlay(constant_segment(100, 2000),
		OverlayConfig(gain_during_overlay=half_db))
	values = samples16(ducked.raw_data)
	assert set(values[:800]) == {2500}
	assert set(values[800:]) == {1000}
	long_tone = constant_segment(1000, 2000)
	truncated = base.overlay(long_tone)
	assert truncated.duration() == 500
	assert set(samples16(truncated.raw_data)) == {3000}

#============================================

def test_overlay_edge_cases() -> None:
	base = constant_segment(200, 1000)
	assert base.overlay(None) == base
	empty = AudioSegment(b'', 2, 8000, 1)
	assert base.overlay(empty, OverlayConfig(loop_to_end=True)) == base
	stereo = constant_segment(100, 10, channels=2)
	assert base.overlay(stereo).channels == 2
	config = OverlayConfig(position=50)
	base.overlay(stereo, config)
	assert config.position == 50
	with pytest.raises(dataclasses.FrozenInstanceError):
		config.position = 10

#============================================

def test_levels() -> None:
	seg = constant_segment(100, 16384)
	assert seg.rms() == pytest.approx(16384.0)
	assert seg.dbfs() == pytest.approx(-6.0206, abs=1e-3)
	assert seg.max_possible_amplitude() == 32768.0
	negative = constant_segment(100, -5000)
	assert negative.max() == 5000.0
	assert seg.max_dbfs() == pytest.approx(-6.0206, abs=1e-3)
	unsigned = AudioSegment(bytes([192]) * 100, 1, 8000, 1)
	assert unsigned.rms() == pytest.approx(16384.0)

#============================================

def test_rms_memo_shared_between_threads() -> None:
	seg = noise_segment(500, seed=11)
	expected = seg.rms()
	with concurrent.futures.ThreadPoolExecutor(max_workers=4) as executor:
		values = list(executor.map(lambda _: seg.rms(), range(16)))
	assert values == [expected] * 16

#============================================

def test_get_array_of_samples() -> None:
	seg = AudioSegment(pcm16([5, -5]), 2, 8000, 1)
	assert seg.get_array_of_samples().tolist() == [5, -5]
	unsigned = AudioSegment(bytes([0, 255]), 1, 8000, 1)
	assert unsigned.get_array_of_samples().tolist() == [0, 255]

#============================================

def test_reverse_swaps_stereo_channels() -> None:
	stereo = AudioSegment(pcm16([1, -1, 2, -2]), 2, 8000, 2)
	assert samples16(stereo.reverse().raw_data) == [-2, 2, -1, 1]
