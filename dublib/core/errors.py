#!/usr/bin/env python3

#============================================

class AudioError(RuntimeError):
	"""Base class for every error raised by dublib."""

#============================================

class InvalidRange(AudioError):
	pass

#============================================

class InvalidWidth(AudioError):
	pass

#============================================

class MalformedBuffer(AudioError):
	pass

#============================================

class UnsupportedConversion(AudioError):
	pass

#============================================

class EmptyAudio(AudioError):
	pass

#============================================

class DecodeError(AudioError):
	pass
