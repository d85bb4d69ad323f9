import argparse
import logging
import os
import sys

import cv2

from .config import PipelineConfig, load_config
from .errors import InputError
from .plate_pipeline import PlatePipeline
from .utils import load_image


def save_results(readings, output_dir):
    """Write plate crops, binary masks and glyph images under output_dir"""
    os.makedirs(output_dir, exist_ok=True)
    for i, reading in enumerate(readings, start=1):
        cv2.imwrite(os.path.join(output_dir, f'plate_{i}.png'), reading.plate_image)
        if reading.binary_mask is not None:
            cv2.imwrite(os.path.join(output_dir, f'plate_{i}_binary.png'),
                        reading.binary_mask.astype('uint8') * 255)
        char_dir = os.path.join(output_dir, f'plate_{i}')
        os.makedirs(char_dir, exist_ok=True)
        for j, glyph_reading in enumerate(reading.glyphs, start=1):
            cv2.imwrite(os.path.join(char_dir, f'char_{j:02d}.png'), glyph_reading.glyph.image)


def run_single_image(image_path, config, output_dir=None):
    image = load_image(image_path)
    pipeline = PlatePipeline(config)
    readings = pipeline.process_image(image)

    if not readings:
        print('No license plates detected in', image_path)
        return readings

    print(f'Found {len(readings)} license plate(s) in {image_path}')
    for i, reading in enumerate(readings, start=1):
        x, y, w, h = reading.candidate.bbox
        print(f'Plate {i}: Position [{x}, {y}], Size [{w} x {h}], '
              f'method={reading.method}, characters={len(reading.glyphs)}')
        for j, g in enumerate(reading.glyphs, start=1):
            votes = ' '.join(f'{v.classifier}={v.symbol}' for v in g.votes)
            print(f'  char {j:02d}: {votes} -> {g.symbol}')
        print(f'  Text: "{reading.text}"  State: {reading.state}')

    if output_dir:
        save_results(readings, output_dir)
        print('Results saved to', output_dir)
    return readings


def build_config(args):
    config = load_config(args.config) if args.config else PipelineConfig()
    if args.ocr:
        config.ocr.backend = args.ocr
    if args.ocr_timeout is not None:
        config.ocr.timeout_sec = args.ocr_timeout
    if args.workers is not None:
        config.max_workers = args.workers
    return config


def main(argv=None):
    parser = argparse.ArgumentParser(description='Locate, segment and read licence plates')
    parser.add_argument('--input', required=True, help='Path to input image')
    parser.add_argument('--output', default=None, help='Directory for plate and character crops')
    parser.add_argument('--ocr', default=None, choices=['tesseract', 'easyocr', 'none'],
                        help='OCR oracle backend')
    parser.add_argument('--ocr-timeout', type=float, default=None, help='Seconds allowed per OCR call')
    parser.add_argument('--workers', type=int, default=None, help='Plates processed in parallel')
    parser.add_argument('--config', default=None, help='JSON file overriding tuning constants')
    parser.add_argument('--verbose', action='store_true', help='Log diagnostic counts and scores')
    args = parser.parse_args(argv)

    logging.basicConfig(level=logging.INFO if args.verbose else logging.WARNING,
                        format='%(asctime)s %(levelname)s %(name)s: %(message)s')
    try:
        config = build_config(args)
    except (OSError, ValueError) as e:
        print('Invalid config:', e)
        return 2
    try:
        run_single_image(args.input, config, args.output)
    except InputError as e:
        print('Error:', e)
        return 1
    return 0


if __name__ == '__main__':
    sys.exit(main())
