#!/usr/bin/env python3

"""
silence_concurrent.py

Thread pool versions of the silence detectors. Candidate windows are
split into contiguous partitions, each worker measures RMS straight from
the segment buffer, and the flags are put back in candidate order before
the same merge step the sequential detector uses. Results are identical
to dublib.core.silence for the same inputs.
"""

# Standard Library
import concurrent.futures
import math
import os

# local repo modules
from dublib.core import audioop
from dublib.core import silence

#============================================

def window_rms(seg, start: int, end: int) -> float:
	"""
	RMS of [start, end) ms without building a sliced AudioSegment.

	Matches seg.slice(start, end).rms(), including the width-1 path that
	measures on a 16-bit copy.
	"""
	window = seg.window_bytes(start, end)
	width = seg.sample_width
	if width == 1:
		window = audioop.bias(window, 1, -128)
		window = audioop.lin2lin(window, 1, 2)
		width = 2
	return audioop.rms(window, width)

#============================================

def _scan_partition(seg, positions: list, start_index: int,
	min_silence_len: int, threshold: float) -> list:
	results = []
	for offset, position in enumerate(positions):
		rms_value = window_rms(seg, position, position + min_silence_len)
		results.append((start_index + offset, rms_value <= threshold))
	return results

#============================================

def pool_size(candidate_count: int, max_workers: int = None) -> int:
	if max_workers is None or max_workers <= 0:
		max_workers = os.cpu_count() or 1
	return min(max_workers, candidate_count)

#============================================

def silent_flags(seg, slice_starts: list, min_silence_len: int,
	threshold: float, max_workers: int = None) -> list:
	"""
	Evaluate every candidate window on a thread pool.

	Args:
		seg: AudioSegment to scan; shared read only by all workers.
		slice_starts: Window starts in ms.
		min_silence_len: Window length in ms.
		threshold: Linear RMS threshold.
		max_workers: Pool size limit, None or 0 for the CPU count.

	Returns:
		list: One bool per start, in the order of slice_starts.
	"""
	num_workers = pool_size(len(slice_starts), max_workers)
	if num_workers == 0:
		return []
	flags = [False] * len(slice_starts)
	chunk_size = int(math.ceil(len(slice_starts) / num_workers))
	with concurrent.futures.ThreadPoolExecutor(max_workers=num_workers) as executor:
		futures = []
		for worker_index in range(num_workers):
			start = worker_index * chunk_size
			end = min(start + chunk_size, len(slice_starts))
			if start >= end:
				continue
			futures.append(executor.submit(_scan_partition, seg,
				slice_starts[start:end], start, min_silence_len, threshold))
		for future in concurrent.futures.as_completed(futures):
			# result() re-raises any worker exception here
			for index, is_silent in future.result():
				flags[index] = is_silent
	return flags

#============================================

def detect_silence_concurrent(seg, min_silence_len: int = 1000,
	silence_thresh=-16.0, seek_step: int = 1, max_workers: int = None) -> list:
	"""
	Thread pool variant of silence.detect_silence with identical output.
	"""
	seg_len = seg.duration()
	if seg_len < min_silence_len:
		return []
	threshold = silence.silence_threshold(seg, silence_thresh)
	slice_starts = silence.candidate_starts(seg_len, min_silence_len, seek_step)
	flags = silent_flags(seg, slice_starts, min_silence_len, threshold, max_workers)
	silence_starts = [start for start, is_silent in zip(slice_starts, flags) if is_silent]
	return silence.merge_silence_starts(silence_starts, min_silence_len, seek_step)

#============================================

def detect_nonsilent_concurrent(seg, min_silence_len: int = 1000,
	silence_thresh=-16.0, seek_step: int = 1, max_workers: int = None) -> list:
	silent_ranges = detect_silence_concurrent(seg, min_silence_len,
		silence_thresh, seek_step, max_workers)
	return silence.nonsilent_from_silent(silent_ranges, seg.duration())

#============================================

def split_on_silence_concurrent(seg, min_silence_len: int = 1000,
	silence_thresh=-16.0, keep_silence=100, seek_step: int = 1,
	max_workers: int = None) -> tuple:
	silence.check_empty_audio(seg)
	norm_audio = silence.match_target_amplitude(seg, silence.NORMALIZE_TARGET_DB)
	nonsilent_ranges = detect_nonsilent_concurrent(norm_audio, min_silence_len,
		silence_thresh, seek_step, max_workers)
	return silence.chunk_nonsilent(seg, nonsilent_ranges, keep_silence)

#============================================

def split_audio_concurrent(path_or_segment, target_len: float = None,
	win: float = None, max_workers: int = None) -> list:
	if not target_len:
		target_len = silence.DEFAULT_TARGET_LEN
	if not win:
		win = silence.DEFAULT_WINDOW
	audio, label = silence.resolve_audio(path_or_segment)

	def detector(window_audio, min_silence_len, silence_thresh, seek_step):
		return detect_silence_concurrent(window_audio, min_silence_len,
			silence_thresh, seek_step, max_workers)

	return silence.find_split_points(audio, target_len, win, detector, label)
