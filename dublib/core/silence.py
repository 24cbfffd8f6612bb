#!/usr/bin/env python3

"""
silence.py

Silence detection and silence driven segmentation on AudioSegment values.
All ranges are [start, end) pairs in milliseconds unless noted.
"""

# Standard Library
import os

# local repo modules
from dublib.core import errors
from dublib.core import utils
from dublib.core.volume import Volume
from dublib.media import loader

#============================================

DEFAULT_TARGET_LEN = 30 * 60
DEFAULT_WINDOW = 60
SAFE_MARGIN = 0.5
SPLIT_THRESHOLD_DB = -30.0
NORMALIZE_TARGET_DB = -20.0

#============================================

def silence_threshold(seg, silence_thresh) -> float:
	"""
	Convert a dBFS threshold to a linear RMS amplitude for seg.

	Args:
		seg: AudioSegment the threshold applies to.
		silence_thresh: Threshold in dBFS.

	Returns:
		float: Threshold comparable to seg.rms().
	"""
	return Volume(silence_thresh).to_ratio() * seg.max_possible_amplitude()

#============================================

def candidate_starts(seg_len: int, min_silence_len: int, seek_step: int) -> list:
	"""
	List the window start positions to test for silence.

	Starts run every seek_step ms and always include the last start that
	still fits a full window, even when it is off the step grid.

	Args:
		seg_len: Segment duration in ms.
		min_silence_len: Window length in ms.
		seek_step: Distance between starts in ms.

	Returns:
		list: Start positions in ms.
	"""
	if seek_step < 1:
		raise errors.InvalidRange("seek_step must be at least 1 ms")
	last_slice_start = seg_len - min_silence_len
	slice_starts = list(range(0, last_slice_start + 1, seek_step))
	if last_slice_start % seek_step != 0:
		slice_starts.append(last_slice_start)
	return slice_starts

#============================================

def merge_silence_starts(silence_starts: list, min_silence_len: int,
	seek_step: int) -> list:
	"""
	Combine silent window starts into silent ranges.

	A new range opens only when a start is off the step grid and more
	than one window length past the previous start. Starts that are off
	the grid but overlap the previous window join the current range.

	Args:
		silence_starts: Ordered starts of silent windows in ms.
		min_silence_len: Window length in ms.
		seek_step: Distance between starts in ms.

	Returns:
		list: [start, end] ranges in ms.
	"""
	if len(silence_starts) == 0:
		return []
	silent_ranges = []
	prev_i = silence_starts[0]
	current_range_start = prev_i
	for silence_start_i in silence_starts[1:]:
		continuous = (silence_start_i == prev_i + seek_step)
		# two small blips can make one window loud while the silence
		# still overlaps, keep those in the same range
		silence_has_gap = (silence_start_i > prev_i + min_silence_len)
		if not continuous and silence_has_gap:
			silent_ranges.append([current_range_start, prev_i + min_silence_len])
			current_range_start = silence_start_i
		prev_i = silence_start_i
	silent_ranges.append([current_range_start, prev_i + min_silence_len])
	return silent_ranges

#============================================

def nonsilent_from_silent(silent_ranges: list, seg_len: int) -> list:
	"""
	Complement silent ranges over [0, seg_len).
	"""
	if len(silent_ranges) == 0:
		return [[0, seg_len]]
	if silent_ranges[0][0] == 0 and silent_ranges[0][1] == seg_len:
		return []
	nonsilent_ranges = []
	prev_end_i = 0
	end_i = 0
	for start_i, end_i in silent_ranges:
		nonsilent_ranges.append([prev_end_i, start_i])
		prev_end_i = end_i
	if end_i != seg_len:
		nonsilent_ranges.append([prev_end_i, seg_len])
	if nonsilent_ranges[0] == [0, 0]:
		nonsilent_ranges.pop(0)
	return nonsilent_ranges

#============================================

def detect_silence(seg, min_silence_len: int = 1000, silence_thresh=-16.0,
	seek_step: int = 1) -> list:
	"""
	Find silent ranges in a segment.

	Args:
		seg: AudioSegment to scan.
		min_silence_len: Shortest silence to report, in ms.
		silence_thresh: Windows with RMS at or below this dBFS are silent.
		seek_step: Step between tested windows, in ms.

	Returns:
		list: [start, end] silent ranges in ms.
	"""
	seg_len = seg.duration()
	# a silence cannot be longer than the sound
	if seg_len < min_silence_len:
		return []
	threshold = silence_threshold(seg, silence_thresh)
	silence_starts = []
	for start_i in candidate_starts(seg_len, min_silence_len, seek_step):
		audio_slice = seg.slice(start_i, start_i + min_silence_len)
		if audio_slice.rms() <= threshold:
			silence_starts.append(start_i)
	return merge_silence_starts(silence_starts, min_silence_len, seek_step)

#============================================

def detect_nonsilent(seg, min_silence_len: int = 1000, silence_thresh=-16.0,
	seek_step: int = 1) -> list:
	silent_ranges = detect_silence(seg, min_silence_len, silence_thresh, seek_step)
	return nonsilent_from_silent(silent_ranges, seg.duration())

#============================================

def check_empty_audio(seg) -> None:
	if seg.rms() == 0:
		raise errors.EmptyAudio("Empty file. Check audio")
	return

#============================================

def match_target_amplitude(seg, target_dbfs):
	change_in_dbfs = Volume(target_dbfs) - seg.dbfs()
	return seg.apply_gain(change_in_dbfs)

#============================================

def _keep_silence_ms(seg, keep_silence) -> int:
	if isinstance(keep_silence, bool):
		return seg.duration() if keep_silence else 0
	return int(keep_silence)

#============================================

def chunk_nonsilent(seg, nonsilent_ranges: list, keep_silence) -> tuple:
	"""
	Cut seg into chunks around nonsilent ranges.

	Neighbouring chunks split the silence between them at its midpoint,
	each side keeping at most keep_silence ms of it.

	Args:
		seg: Original AudioSegment to cut.
		nonsilent_ranges: [start, end] ranges in ms.
		keep_silence: ms of silence to keep around each chunk, True for all.

	Returns:
		tuple: (chunks, timings) where timings are [start, end] in seconds.
	"""
	seg_len = seg.duration()
	if len(nonsilent_ranges) == 1 and nonsilent_ranges[0] == [0, seg_len]:
		return ([seg], [[0.0, utils.milliseconds_to_seconds(seg_len)]])
	chunks = []
	timings = []
	if len(nonsilent_ranges) == 0:
		return (chunks, timings)
	keep_ms = _keep_silence_ms(seg, keep_silence)
	start_min = 0
	for index in range(len(nonsilent_ranges) - 1):
		range_start, range_end = nonsilent_ranges[index]
		next_start = nonsilent_ranges[index + 1][0]
		end_max = range_end + (next_start - range_end + 1) // 2
		start_i = max(start_min, range_start - keep_ms)
		end_i = min(end_max, range_end + keep_ms)
		chunks.append(seg.slice(start_i, end_i))
		timings.append([utils.milliseconds_to_seconds(start_i),
			utils.milliseconds_to_seconds(end_i)])
		start_min = range_end
	range_start, range_end = nonsilent_ranges[-1]
	start_i = max(start_min, range_start - keep_ms)
	end_i = min(seg_len, range_end + keep_ms)
	chunks.append(seg.slice(start_i, end_i))
	timings.append([utils.milliseconds_to_seconds(start_i),
		utils.milliseconds_to_seconds(end_i)])
	return (chunks, timings)

#============================================

def split_on_silence(seg, min_silence_len: int = 1000, silence_thresh=-16.0,
	keep_silence=100, seek_step: int = 1) -> tuple:
	"""
	Split a segment into chunks separated by silence.

	Detection runs on a copy normalized toward -20 dBFS so the threshold
	is relative to the program level; the chunks come from seg itself.

	Args:
		seg: AudioSegment to split.
		min_silence_len: Shortest silence that splits, in ms.
		silence_thresh: Silence threshold in dBFS.
		keep_silence: ms of silence to keep around chunks, True for all.
		seek_step: Step between tested windows, in ms.

	Returns:
		tuple: (chunks, timings) with timings in seconds.
	"""
	check_empty_audio(seg)
	norm_audio = match_target_amplitude(seg, NORMALIZE_TARGET_DB)
	nonsilent_ranges = detect_nonsilent(norm_audio, min_silence_len,
		silence_thresh, seek_step)
	return chunk_nonsilent(seg, nonsilent_ranges, keep_silence)

#============================================

def detect_leading_silence(seg, silence_thresh=-50.0, chunk_size: int = 10) -> int:
	"""
	Return how many ms at the start of seg stay below silence_thresh.
	"""
	if chunk_size < 1:
		raise errors.InvalidRange("chunk_size must be at least 1 ms")
	seg_len = seg.duration()
	trim_ms = 0
	while trim_ms < seg_len:
		if seg.slice(trim_ms, trim_ms + chunk_size).dbfs() < silence_thresh:
			trim_ms += chunk_size
		else:
			break
	return min(trim_ms, seg_len)

#============================================

def find_split_points(audio, target_len: float, win: float, silence_detector,
	label: str = "audio") -> list:
	"""
	Cut a long recording into pieces close to target_len seconds.

	Around each nominal cut the window [cut - win, cut + win] is scanned
	for a silence of at least twice SAFE_MARGIN that starts at or after
	the nominal cut; the cut moves SAFE_MARGIN into the first one found.

	Args:
		audio: AudioSegment to split.
		target_len: Nominal piece length in seconds.
		win: Search window on each side of a cut, in seconds.
		silence_detector: detect_silence compatible callable.
		label: Name used in progress messages.

	Returns:
		list: [start, end] pieces in seconds.
	"""
	duration = float(audio.duration() // 1000)
	if duration <= target_len + win:
		return [[0.0, duration]]
	segments = []
	pos = 0.0
	while pos < duration:
		if duration - pos <= target_len:
			segments.append([pos, duration])
			break
		threshold = pos + target_len
		window_start = max(threshold - win, 0.0)
		ws = int(window_start * 1000)
		we = int((threshold + win) * 1000)
		window_audio = audio.slice(ws, we)
		silence_regions = silence_detector(window_audio, int(SAFE_MARGIN * 1000),
			SPLIT_THRESHOLD_DB, 1)
		valid_regions = []
		for region in silence_regions:
			start = region[0] / 1000.0 + window_start
			end = region[1] / 1000.0 + window_start
			if (end - start) < SAFE_MARGIN * 2:
				continue
			if threshold <= start + SAFE_MARGIN <= threshold + win:
				valid_regions.append([start, end])
		split_at = threshold
		if len(valid_regions) > 0:
			split_at = valid_regions[0][0] + SAFE_MARGIN
		else:
			utils.report(
				f"No valid silence regions found for {label} at {threshold:.1f}s, using threshold")
		segments.append([pos, split_at])
		pos = split_at
	utils.report(f"Audio split completed {len(segments)} segments")
	return segments

#============================================

def resolve_audio(path_or_segment) -> tuple:
	"""
	Load a path into an AudioSegment, pass segments through.

	Returns:
		tuple: (AudioSegment, label)
	"""
	if isinstance(path_or_segment, (str, os.PathLike)):
		path = os.fspath(path_or_segment)
		return (loader.load_file(path), path)
	return (path_or_segment, "audio")

#============================================

def split_audio(path_or_segment, target_len: float = None, win: float = None) -> list:
	"""
	Split a long recording at silences near every target_len seconds.

	Args:
		path_or_segment: Audio file path or AudioSegment.
		target_len: Nominal piece length in seconds, default 30 minutes.
		win: Search window in seconds, default 60.

	Returns:
		list: [start, end] pieces in seconds.
	"""
	if not target_len:
		target_len = DEFAULT_TARGET_LEN
	if not win:
		win = DEFAULT_WINDOW
	audio, label = resolve_audio(path_or_segment)
	return find_split_points(audio, target_len, win, detect_silence, label)
