#!/usr/bin/env python3

import math

#============================================

class Volume(float):
	"""
	Decibels relative to full scale.

	0 dB is unity gain, negative values attenuate.
	"""

	#============================
	@classmethod
	def from_ratio(cls, ratio: float, denominator: float = 0,
		amplitude: bool = True) -> 'Volume':
		if denominator != 0:
			ratio = float(ratio) / float(denominator)
		if ratio <= 0:
			return cls(-math.inf)
		if amplitude:
			return cls(20.0 * math.log10(ratio))
		return cls(10.0 * math.log10(ratio))

	#============================
	def to_ratio(self, amplitude: bool = True) -> float:
		if amplitude:
			return math.pow(10.0, float(self) / 20.0)
		return math.pow(10.0, float(self) / 10.0)

	#============================
	def __repr__(self) -> str:
		return f"Volume({float(self):.2f}dB)"
