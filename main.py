"""
SampleZone - Main Entry Point

Example usage:
    python main.py detect path/to/loop.wav
    python main.py --config config/config.yaml group path/to/samples/
"""

import sys

from samplezone.cli import main

if __name__ == "__main__":
    sys.exit(main())
