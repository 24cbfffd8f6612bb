#!/usr/bin/env python3

"""
dublib_cli.py

Detect silence in an audio file, split it into chunks, or cut a long
recording near a target length. Results are printed as YAML.
"""

# Standard Library
import argparse
import os
import sys

# PIP3 modules
import yaml
from tqdm import tqdm

# local repo modules
from dublib.core import config
from dublib.core import silence
from dublib.core import silence_concurrent
from dublib.core import utils
from dublib.media import loader

#============================================

MODES = ('silence', 'nonsilent', 'split', 'long')

#============================================

def parse_args(argv: list = None):
	"""
	Parse command-line arguments.

	Returns:
		argparse.Namespace: Parsed command-line arguments.
	"""
	parser = argparse.ArgumentParser(description="PCM silence detection and splitting")
	parser.add_argument('-i', '--input', dest='input_file', required=True,
		help="Input audio file path.")
	parser.add_argument('-m', '--mode', dest='mode', choices=MODES, default='nonsilent',
		help="What to compute.")
	parser.add_argument('-c', '--config', dest='config_file', default=None,
		help="Path to a dublib config YAML.")
	parser.add_argument('-w', '--write-config', dest='write_config', action='store_true',
		help="Write the default config next to the input and exit.")
	parser.add_argument('-o', '--output-dir', dest='output_dir', default=None,
		help="Directory for chunk wav files in split mode.")
	parser.add_argument('-j', '--concurrent', dest='concurrent', action='store_true',
		help="Use the thread pool detector.")
	parser.add_argument('-J', '--sequential', dest='concurrent', action='store_false',
		help="Use the sequential detector.")
	parser.add_argument('-q', '--quiet', dest='quiet', action='store_true',
		help="Suppress progress output.")
	parser.add_argument('-d', '--debug', dest='debug', action='store_true',
		help="Print a debug report before the results.")
	parser.set_defaults(concurrent=None)
	args = parser.parse_args(argv)
	return args

#============================================

def resolve_settings(args) -> dict:
	config_path = args.config_file
	if config_path is None:
		settings = config.build_settings(None, "<defaults>")
	else:
		raw_config = config.load_config(config_path)
		settings = config.build_settings(raw_config, config_path)
	if args.concurrent is not None:
		settings['concurrent'] = args.concurrent
	return settings

#============================================

def build_debug_report(audio_path: str, segment, settings: dict) -> str:
	lines = []
	lines.append(f"audio_path: {audio_path}")
	lines.append(f"sample_width: {segment.sample_width}")
	lines.append(f"frame_rate: {segment.frame_rate}")
	lines.append(f"channels: {segment.channels}")
	lines.append(f"duration_ms: {segment.duration()}")
	lines.append(f"rms: {segment.rms():.3f}")
	lines.append(f"dbfs: {float(segment.dbfs()):.2f}")
	lines.append(f"max_dbfs: {float(segment.max_dbfs()):.2f}")
	for key in sorted(settings.keys()):
		lines.append(f"{key}: {settings[key]}")
	lines.append("")
	return "\n".join(lines)

#============================================

def export_chunks(chunks: list, output_dir: str, basename: str) -> list:
	os.makedirs(output_dir, exist_ok=True)
	paths = []
	iter_chunks = chunks
	if not utils.is_quiet_mode():
		iter_chunks = tqdm(chunks, desc="export", unit="chunk")
	for index, chunk in enumerate(iter_chunks, start=1):
		chunk_path = os.path.join(output_dir, f"{basename}-{index:03d}.wav")
		loader.export_wav(chunk, chunk_path)
		paths.append(chunk_path)
	return paths

#============================================

def run_mode(args, segment, settings: dict) -> dict:
	workers = settings['workers'] or None
	detect_args = (settings['min_silence_len'], settings['silence_thresh'],
		settings['seek_step'])
	if args.mode == 'silence':
		if settings['concurrent']:
			ranges = silence_concurrent.detect_silence_concurrent(segment, *detect_args,
				max_workers=workers)
		else:
			ranges = silence.detect_silence(segment, *detect_args)
		return {'silence': ranges}
	if args.mode == 'nonsilent':
		if settings['concurrent']:
			ranges = silence_concurrent.detect_nonsilent_concurrent(segment, *detect_args,
				max_workers=workers)
		else:
			ranges = silence.detect_nonsilent(segment, *detect_args)
		return {'nonsilent': ranges}
	if args.mode == 'split':
		if settings['concurrent']:
			chunks, timings = silence_concurrent.split_on_silence_concurrent(segment,
				settings['min_silence_len'], settings['silence_thresh'],
				settings['keep_silence'], settings['seek_step'], max_workers=workers)
		else:
			chunks, timings = silence.split_on_silence(segment,
				settings['min_silence_len'], settings['silence_thresh'],
				settings['keep_silence'], settings['seek_step'])
		result = {'timings': timings}
		if args.output_dir is not None:
			basename = os.path.splitext(os.path.basename(args.input_file))[0]
			result['files'] = export_chunks(chunks, args.output_dir, basename)
		return result
	if settings['concurrent']:
		pieces = silence_concurrent.split_audio_concurrent(segment,
			settings['target_len'], settings['window'], max_workers=workers)
	else:
		pieces = silence.split_audio(segment, settings['target_len'], settings['window'])
	return {'pieces': pieces}

#============================================

def main(argv: list = None) -> int:
	args = parse_args(argv)
	utils.set_quiet_mode(args.quiet)
	if args.write_config:
		config_path = args.config_file or config.default_config_path(args.input_file)
		config.write_config_file(config_path, config.default_config())
		utils.report(f"wrote config: {config_path}")
		return 0
	settings = resolve_settings(args)
	segment = loader.load_file(args.input_file)
	if args.debug:
		print(build_debug_report(args.input_file, segment, settings))
	result = run_mode(args, segment, settings)
	print(yaml.safe_dump(result, sort_keys=False))
	return 0


if __name__ == '__main__':
	sys.exit(main())
