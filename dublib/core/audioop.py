#!/usr/bin/env python3

"""
audioop.py

Sample arithmetic on raw little-endian signed PCM byte buffers.
Every function takes the buffer plus the sample width in bytes and
returns new bytes; nothing is modified in place.
"""

# Standard Library
import dataclasses
import math

# PIP3 modules
import numpy

# local repo modules
from dublib.core import errors

#============================================

DTYPE_MAP = {
	1: numpy.dtype('<i1'),
	2: numpy.dtype('<i2'),
	4: numpy.dtype('<i4'),
}

UNSIGNED_DTYPE_MAP = {
	1: numpy.dtype('<u1'),
	2: numpy.dtype('<u2'),
	4: numpy.dtype('<u4'),
}

#============================================

@dataclasses.dataclass(frozen=True)
class RatecvState():
	"""
	Carried resampler position.

	d is the fixed-point step accumulator, samples holds one
	(previous, current) pair per channel, both scaled to 32 bits.
	"""
	d: int
	samples: tuple

	#============================
	def to_tuple(self) -> tuple:
		return (self.d, tuple((prev, cur) for prev, cur in self.samples))

	#============================
	@classmethod
	def from_tuple(cls, value: tuple) -> 'RatecvState':
		if not isinstance(value, (tuple, list)) or len(value) != 2:
			raise errors.UnsupportedConversion("illegal state argument")
		d, samples = value
		pairs = []
		for pair in samples:
			if len(pair) != 2:
				raise errors.UnsupportedConversion("illegal state argument")
			pairs.append((int(pair[0]), int(pair[1])))
		return cls(int(d), tuple(pairs))

#============================================

def sample_bounds(width: int) -> tuple:
	"""
	Return the signed (min, max) range for a sample width.

	Args:
		width: Sample width in bytes.

	Returns:
		tuple: (minimum, maximum) representable sample values.
	"""
	check_width(width)
	bits = 8 * width
	return (-(1 << (bits - 1)), (1 << (bits - 1)) - 1)

#============================================

def check_width(width: int) -> None:
	if width not in DTYPE_MAP:
		raise errors.InvalidWidth(f"Size should be 1, 2 or 4, not {width}")
	return

#============================================

def check_buffer(fragment, width: int) -> None:
	check_width(width)
	if len(fragment) % width != 0:
		raise errors.MalformedBuffer("not a whole number of frames")
	return

#============================================

def _to_samples(fragment, width: int) -> numpy.ndarray:
	check_buffer(fragment, width)
	return numpy.frombuffer(fragment, dtype=DTYPE_MAP[width])

#============================================

def _saturate(values: numpy.ndarray, width: int) -> bytes:
	# values is float64 or int64, clipped then narrowed to the target width
	minval, maxval = sample_bounds(width)
	if values.dtype.kind == 'f':
		values = numpy.rint(values)
	clipped = numpy.clip(values, minval, maxval)
	return clipped.astype(DTYPE_MAP[width]).tobytes()

#============================================

def mul(fragment, width: int, factor: float) -> bytes:
	"""
	Scale every sample by factor, rounding to nearest and saturating.

	Args:
		fragment: PCM bytes.
		width: Sample width in bytes.
		factor: Linear gain.

	Returns:
		bytes: Scaled PCM bytes.
	"""
	samples = _to_samples(fragment, width)
	scaled = samples.astype(numpy.float64) * float(factor)
	return _saturate(scaled, width)

#============================================

def add(fragment1, fragment2, width: int) -> bytes:
	"""
	Mix two buffers sample by sample with saturation.

	Args:
		fragment1: First PCM buffer.
		fragment2: Second PCM buffer, same length as the first.
		width: Sample width in bytes.

	Returns:
		bytes: Mixed PCM bytes.
	"""
	samples1 = _to_samples(fragment1, width)
	samples2 = _to_samples(fragment2, width)
	if samples1.size != samples2.size:
		raise errors.MalformedBuffer("Lengths should be the same")
	total = samples1.astype(numpy.int64) + samples2.astype(numpy.int64)
	return _saturate(total, width)

#============================================

def bias(fragment, width: int, bias_value: int) -> bytes:
	"""
	Add a constant to every sample, wrapping modulo 2**(8*width).

	Args:
		fragment: PCM bytes.
		width: Sample width in bytes.
		bias_value: Integer to add.

	Returns:
		bytes: Biased PCM bytes.
	"""
	samples = _to_samples(fragment, width)
	mask = (1 << (8 * width)) - 1
	wrapped = (samples.astype(numpy.int64) + int(bias_value)) & mask
	unsigned = wrapped.astype(UNSIGNED_DTYPE_MAP[width])
	return unsigned.view(DTYPE_MAP[width]).tobytes()

#============================================

def reverse(fragment, width: int) -> bytes:
	samples = _to_samples(fragment, width)
	return samples[::-1].tobytes()

#============================================

def maxabs(fragment, width: int) -> int:
	"""
	Return the maximum absolute sample value, 0 for an empty buffer.
	"""
	samples = _to_samples(fragment, width)
	if samples.size == 0:
		return 0
	return int(numpy.max(numpy.abs(samples.astype(numpy.int64))))

#============================================

def rms(fragment, width: int) -> float:
	"""
	Root mean square over all samples, 0.0 for an empty buffer.

	Widths 1 and 2 accumulate squares in int64 which holds billions of
	full scale 16-bit squares; width 4 squares need float64.

	Args:
		fragment: PCM bytes.
		width: Sample width in bytes.

	Returns:
		float: RMS amplitude.
	"""
	samples = _to_samples(fragment, width)
	if samples.size == 0:
		return 0.0
	if width == 4:
		values = samples.astype(numpy.float64)
		sum_squares = float(numpy.dot(values, values))
	else:
		values = samples.astype(numpy.int64)
		sum_squares = int(numpy.dot(values, values))
	return math.sqrt(sum_squares / samples.size)

#============================================

def lin2lin(fragment, width: int, newwidth: int) -> bytes:
	"""
	Convert samples between widths keeping the most significant bits.

	Widening shifts the sample into the high bytes of the new width,
	narrowing drops the low-order bytes.

	Args:
		fragment: PCM bytes.
		width: Source sample width.
		newwidth: Target sample width.

	Returns:
		bytes: Converted PCM bytes.
	"""
	samples = _to_samples(fragment, width)
	check_width(newwidth)
	if width == newwidth:
		return samples.tobytes()
	as32 = samples.astype(numpy.int64) << (32 - 8 * width)
	converted = as32 >> (32 - 8 * newwidth)
	return converted.astype(DTYPE_MAP[newwidth]).tobytes()

#============================================

def tostereo(fragment, width: int, lfactor: float, rfactor: float) -> bytes:
	"""
	Duplicate a mono buffer into interleaved stereo with per-side gain.
	"""
	samples = _to_samples(fragment, width).astype(numpy.float64)
	left = numpy.clip(numpy.rint(samples * float(lfactor)), *sample_bounds(width))
	right = numpy.clip(numpy.rint(samples * float(rfactor)), *sample_bounds(width))
	interleaved = numpy.column_stack((left, right)).ravel()
	return interleaved.astype(DTYPE_MAP[width]).tobytes()

#============================================

def tomono(fragment, width: int, lfactor: float, rfactor: float) -> bytes:
	"""
	Combine an interleaved stereo buffer into mono.

	Each output sample is left * lfactor + right * rfactor, saturated.
	"""
	check_buffer(fragment, width)
	if len(fragment) % (2 * width) != 0:
		raise errors.MalformedBuffer("not a whole number of frames")
	samples = _to_samples(fragment, width).astype(numpy.float64)
	pairs = samples.reshape(-1, 2)
	mixed = pairs[:, 0] * float(lfactor) + pairs[:, 1] * float(rfactor)
	return _saturate(mixed, width)

#============================================

def ratecv(fragment, width: int, nchannels: int, inrate: int, outrate: int,
	state: RatecvState = None, weightA: int = 1, weightB: int = 0) -> tuple:
	"""
	Convert the frame rate of a buffer with linear interpolation.

	The returned state continues the conversion: feeding it back with the
	next fragment gives the same output as one call on the joined input.

	Args:
		fragment: Interleaved PCM bytes.
		width: Sample width in bytes.
		nchannels: Number of interleaved channels.
		inrate: Source frame rate.
		outrate: Target frame rate.
		state: RatecvState from a previous call, or None to start fresh.
		weightA: Weight of the incoming sample in the smoothing filter.
		weightB: Weight of the previous sample in the smoothing filter.

	Returns:
		tuple: (converted bytes, RatecvState)
	"""
	check_width(width)
	if nchannels < 1:
		raise errors.UnsupportedConversion("# of channels should be >= 1")
	if weightA < 1 or weightB < 0:
		raise errors.UnsupportedConversion(
			"weightA should be >= 1, weightB should be >= 0")
	if inrate <= 0 or outrate <= 0:
		raise errors.UnsupportedConversion("sampling rate not > 0")
	bytes_per_frame = width * nchannels
	if len(fragment) % bytes_per_frame != 0:
		raise errors.MalformedBuffer("not a whole number of frames")
	common = math.gcd(inrate, outrate)
	inrate //= common
	outrate //= common
	common = math.gcd(weightA, weightB)
	weightA //= common
	weightB //= common
	if isinstance(state, (tuple, list)):
		state = RatecvState.from_tuple(state)
	if state is None:
		d = -outrate
		prev_i = [0] * nchannels
		cur_i = [0] * nchannels
	else:
		if len(state.samples) != nchannels:
			raise errors.UnsupportedConversion("illegal state argument")
		d = state.d
		prev_i = [pair[0] for pair in state.samples]
		cur_i = [pair[1] for pair in state.samples]
	shift = 32 - 8 * width
	samples = numpy.frombuffer(fragment, dtype=DTYPE_MAP[width])
	frames = (samples.astype(numpy.int64) << shift).reshape(-1, nchannels)
	last_cur = numpy.array(cur_i, dtype=numpy.int64)
	smoothed = _smooth_frames(frames, last_cur, weightA, weightB)
	pieces = []
	# a carried state can still owe output frames before any input is read
	if d >= 0:
		steps = numpy.arange(d // inrate + 1, dtype=numpy.int64)
		owed = _interpolate(numpy.array(prev_i, dtype=numpy.int64)[None, :],
			last_cur[None, :], d - steps * inrate, outrate)
		pieces.append(owed)
		d -= len(steps) * inrate
	frame_count = len(smoothed)
	if frame_count > 0:
		# earlier[j] is the frame before smoothed[j]
		earlier = numpy.vstack((last_cur[None, :], smoothed))
		total = d + frame_count * outrate
		if total >= 0:
			out_index = numpy.arange(total // inrate + 1, dtype=numpy.int64)
			# input frame each output waits for, ceil((n * inrate - d) / outrate) - 1
			in_index = -((d - out_index * inrate) // outrate) - 1
			positions = d + (in_index + 1) * outrate - out_index * inrate
			pieces.append(_interpolate(earlier[in_index], smoothed[in_index],
				positions, outrate))
			d = total - len(out_index) * inrate
		else:
			d = total
		prev_i = earlier[-2].tolist()
		cur_i = smoothed[-1].tolist()
	new_state = RatecvState(int(d), tuple(
		(int(prev), int(cur)) for prev, cur in zip(prev_i, cur_i)))
	if len(pieces) == 0:
		return (b'', new_state)
	values = numpy.concatenate(pieces).ravel() >> shift
	return (values.astype(DTYPE_MAP[width]).tobytes(), new_state)

#============================================

def _smooth_frames(frames: numpy.ndarray, last_cur: numpy.ndarray,
	weightA: int, weightB: int) -> numpy.ndarray:
	"""
	Apply the one-pole input filter used by ratecv.

	With weightB == 0 the weights reduce to 1 and 0 and the frames pass
	through unchanged, otherwise each frame depends on the one before.
	"""
	if weightB == 0:
		return frames
	weight_total = float(weightA + weightB)
	smoothed = numpy.empty_like(frames)
	previous = last_cur.tolist()
	for index, frame in enumerate(frames.tolist()):
		previous = [int((weightA * float(value) + weightB * float(prior)) / weight_total)
			for value, prior in zip(frame, previous)]
		smoothed[index] = previous
	return smoothed

#============================================

def _interpolate(prev: numpy.ndarray, cur: numpy.ndarray, positions: numpy.ndarray,
	outrate: int) -> numpy.ndarray:
	# position d weights prev, outrate - d weights cur
	weights = positions.astype(numpy.float64)[:, None]
	mixed = (prev.astype(numpy.float64) * weights
		+ cur.astype(numpy.float64) * (outrate - weights)) / outrate
	return numpy.trunc(mixed).astype(numpy.int64)
