"""
Allow running the package directly: python -m realtime_mandelbrot
"""
import argparse
import logging

from .app import run
from .config import load_settings


def main(argv=None):
    parser = argparse.ArgumentParser(description="Real-time Mandelbrot viewer")
    parser.add_argument("--width", type=int, default=None,
                        help="Window width in pixels")
    parser.add_argument("--height", type=int, default=None,
                        help="Window height in pixels")
    parser.add_argument("--max-iter", type=int, default=None,
                        help="Iteration cap")
    parser.add_argument("--gpu", dest="use_gpu", action="store_true", default=None,
                        help="Render with PyTorch on the GPU")
    parser.add_argument("--no-gpu", dest="use_gpu", action="store_false",
                        help="Render with the Numba CPU kernel")
    parser.add_argument("--settings", type=str, default=None,
                        help="Path to a settings.json file")
    parser.add_argument("--log-level", type=str, default="INFO",
                        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
                        help="Logging verbosity")
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=getattr(logging, args.log_level),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    settings = load_settings(args.settings)
    run(args.width, args.height, args.max_iter, args.use_gpu, settings=settings)


if __name__ == "__main__":
    main()
