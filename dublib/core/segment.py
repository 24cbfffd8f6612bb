#!/usr/bin/env python3

# Standard Library
import dataclasses
import threading
from fractions import Fraction

# PIP3 modules
import numpy

# local repo modules
from dublib.core import audioop
from dublib.core import errors
from dublib.core import utils
from dublib.core.volume import Volume

#============================================

# (source channels, target channels) -> (converter, gain per source channel)
CHANNEL_CONVERSIONS = {
	(1, 2): (audioop.tostereo, 1.0),
	(2, 1): (audioop.tomono, 0.5),
}

VALID_SAMPLE_WIDTHS = (1, 2, 3, 4)

#============================================

@dataclasses.dataclass(frozen=True)
class OverlayConfig():
	# position in milliseconds
	position: int = 0
	loop_to_end: bool = False
	# 0 means once, negative means until the base runs out
	loop_count: int = 0
	gain_during_overlay: float = 0.0

	#============================
	def effective_loop_count(self) -> int:
		if self.loop_to_end:
			return -1
		if self.loop_count == 0:
			return 1
		return self.loop_count

#============================================

def _widen_24bit(data: bytes) -> bytes:
	"""
	Pad 3-byte samples to 4 bytes with a low-order sign byte.
	"""
	raw = numpy.frombuffer(data, dtype=numpy.uint8).reshape(-1, 3)
	padding = numpy.where(raw[:, 2] > 127, 0xFF, 0x00).astype(numpy.uint8)
	widened = numpy.column_stack((padding, raw)).astype(numpy.uint8)
	return widened.tobytes()

#============================================

class AudioSegment():
	"""
	Immutable block of interleaved PCM audio.

	Every operation returns a new segment; the raw bytes are never
	changed after construction. 8-bit audio is stored unsigned as in
	WAV files, all wider samples are signed little-endian.
	"""

	def __init__(self, data: bytes = b'', sample_width: int = 2,
		frame_rate: int = 44100, channels: int = 1):
		data = bytes(data)
		if sample_width not in VALID_SAMPLE_WIDTHS:
			raise errors.InvalidWidth(f"unsupported sample width: {sample_width}")
		if channels < 1:
			raise errors.UnsupportedConversion("channels must be positive")
		if frame_rate < 0:
			raise errors.UnsupportedConversion("frame rate must not be negative")
		if len(data) % (sample_width * channels) != 0:
			raise errors.MalformedBuffer(
				"data length must be a multiple of sample_width * channels")
		if sample_width == 3:
			data = _widen_24bit(data)
			sample_width = 4
		self._data = data
		self._sample_width = sample_width
		self._frame_rate = frame_rate
		self._channels = channels
		self._frame_width = channels * sample_width
		self._rms = None
		self._rms_lock = threading.Lock()

	#============================
	@classmethod
	def empty(cls) -> 'AudioSegment':
		return cls(b'', sample_width=1, frame_rate=1, channels=1)

	#============================
	@classmethod
	def silent(cls, duration: int = 1000, frame_rate: int = 11025) -> 'AudioSegment':
		frames = int(frame_rate * (duration / 1000.0))
		return cls(b'\x00\x00' * frames, sample_width=2,
			frame_rate=frame_rate, channels=1)

	#============================
	@classmethod
	def from_decoded(cls, decoded: tuple) -> 'AudioSegment':
		"""
		Build a segment from a decoder tuple.

		Args:
			decoded: (sample_width, frame_rate, channels, raw_pcm, format_tag)

		Returns:
			AudioSegment: New segment over the raw PCM.
		"""
		sample_width, frame_rate, channels, raw_pcm, format_tag = decoded
		if format_tag != 'pcm':
			raise errors.DecodeError(f"unsupported format tag: {format_tag}")
		return cls(raw_pcm, sample_width=sample_width,
			frame_rate=frame_rate, channels=channels)

	#============================
	def as_decoded(self) -> tuple:
		return (self._sample_width, self._frame_rate, self._channels,
			self._data, 'pcm')

	#============================
	@property
	def sample_width(self) -> int:
		return self._sample_width

	#============================
	@property
	def frame_rate(self) -> int:
		return self._frame_rate

	#============================
	@property
	def frame_width(self) -> int:
		return self._frame_width

	#============================
	@property
	def channels(self) -> int:
		return self._channels

	#============================
	@property
	def raw_data(self) -> bytes:
		return self._data

	#============================
	def __repr__(self) -> str:
		return (
			f"AudioSegment(sample_width={self._sample_width}, "
			f"frame_rate={self._frame_rate}, frame_width={self._frame_width}, "
			f"channels={self._channels}, duration={self.duration()}ms)"
		)

	#============================
	def __eq__(self, other) -> bool:
		if not isinstance(other, AudioSegment):
			return NotImplemented
		return (self._data == other._data
			and self._sample_width == other._sample_width
			and self._frame_rate == other._frame_rate
			and self._channels == other._channels)

	#============================
	def __hash__(self) -> int:
		return hash((self._data, self._sample_width, self._frame_rate, self._channels))

	#============================
	def __len__(self) -> int:
		return self.duration()

	#============================
	def __getitem__(self, key) -> 'AudioSegment':
		if isinstance(key, slice):
			if key.step is not None:
				raise errors.InvalidRange("slice steps are not supported")
			start = key.start if key.start is not None else 0
			end = key.stop if key.stop is not None else self.duration()
			return self.slice(start, end)
		return self.slice(key, key + 1)

	#============================
	def __add__(self, other) -> 'AudioSegment':
		if isinstance(other, AudioSegment):
			return self.add(other)
		if isinstance(other, (int, float)):
			return self.apply_gain(other)
		return NotImplemented

	#============================
	def __mul__(self, count) -> 'AudioSegment':
		if isinstance(count, int):
			return self.repeat(count)
		return NotImplemented

	#============================
	def _derive(self, data: bytes, sample_width: int = None,
		frame_rate: int = None, channels: int = None) -> 'AudioSegment':
		if sample_width is None:
			sample_width = self._sample_width
		if frame_rate is None:
			frame_rate = self._frame_rate
		if channels is None:
			channels = self._channels
		return AudioSegment(data, sample_width=sample_width,
			frame_rate=frame_rate, channels=channels)

	#============================
	def _parse_position(self, ms: int) -> int:
		return int(self.frame_count_in(ms))

	#============================
	def _silence_frame(self) -> bytes:
		frame = self._data[:self._frame_width]
		if len(frame) < self._frame_width:
			frame = bytes(self._frame_width)
		return audioop.mul(frame, self._sample_width, 0)

	#============================
	def window_bytes(self, start: int, end: int):
		"""
		Frame aligned bytes for [start, end) milliseconds.

		Returns a memoryview into the raw data unless silence frames
		had to be appended to reach the requested length.
		"""
		if start > end:
			raise errors.InvalidRange("start should be smaller than end")
		if start < 0 or end < 0:
			raise errors.InvalidRange("start or end should be positive")
		audio_length = self.duration()
		start = min(start, audio_length)
		end = min(end, audio_length)
		start_index = self._parse_position(start) * self._frame_width
		end_index = self._parse_position(end) * self._frame_width
		expected_length = end_index - start_index
		end_index = min(end_index, len(self._data))
		view = memoryview(self._data)[start_index:end_index]
		missing_frames = (expected_length - len(view)) // self._frame_width
		if missing_frames <= 0:
			return view
		if missing_frames > self.frame_count_in(2):
			raise errors.InvalidRange(
				"you should never be filling in more than 2 ms with silence here, "
				f"missing {missing_frames} frames")
		return bytes(view) + self._silence_frame() * missing_frames

	#============================
	def slice(self, start: int, end: int) -> 'AudioSegment':
		return self._derive(self.window_bytes(start, end))

	#============================
	def append(self, *segments) -> 'AudioSegment':
		synced = sync_segments(self, *segments)
		data = b''.join(seg._data for seg in synced)
		return synced[0]._derive(data)

	#============================
	def add(self, other: 'AudioSegment') -> 'AudioSegment':
		return self.append(other)

	#============================
	def apply_gain(self, volume_change) -> 'AudioSegment':
		ratio = Volume(volume_change).to_ratio()
		return self._derive(audioop.mul(self._data, self._sample_width, ratio))

	#============================
	def repeat(self, count: int) -> 'AudioSegment':
		return self._derive(self._data * max(count, 0))

	#============================
	def reverse(self) -> 'AudioSegment':
		"""
		Reverse sample order. On multi-channel audio the channel order
		inside each frame is reversed too, so stereo left and right swap.
		"""
		return self._derive(audioop.reverse(self._data, self._sample_width))

	#============================
	def fork_with_sample_width(self, sample_width: int) -> 'AudioSegment':
		if sample_width == self._sample_width:
			return self
		data = self._data
		# 8-bit storage is unsigned, the arithmetic layer is signed
		if self._sample_width == 1:
			data = audioop.bias(data, 1, -128)
		if len(data) > 0:
			data = audioop.lin2lin(data, self._sample_width, sample_width)
		if sample_width == 1:
			data = audioop.bias(data, 1, 128)
		return self._derive(data, sample_width=sample_width)

	#============================
	def fork_with_frame_rate(self, frame_rate: int) -> 'AudioSegment':
		if frame_rate == self._frame_rate:
			return self
		if frame_rate <= 0:
			raise errors.UnsupportedConversion("frame rate must be positive")
		data = self._data
		if len(data) > 0:
			data, _state = audioop.ratecv(data, self._sample_width, self._channels,
				self._frame_rate, frame_rate, None, 1, 0)
		return self._derive(data, frame_rate=frame_rate)

	#============================
	def fork_with_channels(self, channels: int) -> 'AudioSegment':
		if channels == self._channels:
			return self
		conversion = CHANNEL_CONVERSIONS.get((self._channels, channels))
		if conversion is None:
			raise errors.UnsupportedConversion(
				f"invalid channels: {self._channels} -> {channels}")
		convert_func, factor = conversion
		data = convert_func(self._data, self._sample_width, factor, factor)
		return self._derive(data, channels=channels)

	#============================
	def overlay(self, other: 'AudioSegment', config: OverlayConfig = None) -> 'AudioSegment':
		"""
		Mix another segment on top of this one.

		The result always has this segment's duration; the overlaid audio
		is cut off at the end of the base.
		"""
		if other is None:
			return self._derive(self._data)
		if config is None:
			config = OverlayConfig()
		loops = config.effective_loop_count()
		segment, other = sync_segments(self, other)
		head = segment.window_bytes(0, config.position)
		tail = segment.window_bytes(config.position, segment.duration())
		width = segment.sample_width
		gain_ratio = None
		if config.gain_during_overlay != 0:
			gain_ratio = Volume(config.gain_during_overlay).to_ratio()
		other_data = other.raw_data
		other_len = len(other_data)
		tail_len = len(tail)
		pieces = [bytes(head)]
		pos = 0
		while loops != 0:
			remaining = max(tail_len - pos, 0)
			if other_len >= remaining:
				other_data = other_data[:remaining]
				other_len = remaining
				loops = 1
			base = tail[pos:pos + other_len]
			if gain_ratio is not None:
				base = audioop.mul(base, width, gain_ratio)
			pieces.append(audioop.add(base, other_data, width))
			pos += other_len
			if other_len == 0:
				break
			loops -= 1
		pieces.append(bytes(tail[pos:]))
		return segment._derive(b''.join(pieces))

	#============================
	def rms(self) -> float:
		with self._rms_lock:
			if self._rms is None:
				if self._sample_width == 1:
					self._rms = self.fork_with_sample_width(2).rms()
				else:
					self._rms = audioop.rms(self._data, self._sample_width)
			return self._rms

	#============================
	def dbfs(self) -> Volume:
		return Volume.from_ratio(self.rms() / self.max_possible_amplitude())

	#============================
	def max(self) -> float:
		return float(audioop.maxabs(self._data, self._sample_width))

	#============================
	def max_dbfs(self) -> Volume:
		return Volume.from_ratio(self.max(), self.max_possible_amplitude())

	#============================
	def max_possible_amplitude(self) -> float:
		bits = self._sample_width * 8
		# half the range sits above zero
		return float(2 ** bits) / 2

	#============================
	def duration(self) -> int:
		if self._frame_rate == 0:
			return 0
		return utils.round_half_up_fraction(
			Fraction(1000 * self.frame_count(), self._frame_rate))

	#============================
	def duration_seconds(self) -> float:
		return utils.milliseconds_to_seconds(self.duration())

	#============================
	def frame_count(self) -> int:
		if self._frame_width > 0:
			return len(self._data) // self._frame_width
		return 0

	#============================
	def frame_count_in(self, ms: int) -> float:
		ms = min(ms, self.duration())
		return ms * (self._frame_rate / 1000.0)

	#============================
	def get_array_of_samples(self) -> numpy.ndarray:
		if self._sample_width == 1:
			return numpy.frombuffer(self._data, dtype=numpy.uint8)
		return numpy.frombuffer(self._data, dtype=audioop.DTYPE_MAP[self._sample_width])

#============================================

def sync_segments(*segments) -> list:
	"""
	Bring segments to a shared channel count, frame rate and sample width.

	The target for each property is the largest value among the inputs,
	so nothing is ever downsampled.

	Args:
		segments: AudioSegment values.

	Returns:
		list: Converted segments in input order.
	"""
	max_channels = max(seg.channels for seg in segments)
	max_frame_rate = max(seg.frame_rate for seg in segments)
	max_sample_width = max(seg.sample_width for seg in segments)
	synced = []
	for seg in segments:
		new_seg = seg.fork_with_channels(max_channels)
		new_seg = new_seg.fork_with_frame_rate(max_frame_rate)
		new_seg = new_seg.fork_with_sample_width(max_sample_width)
		synced.append(new_seg)
	return synced
