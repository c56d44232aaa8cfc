#!/usr/bin/env python3
"""
Train the MRZ glyph classifier from a directory of labelled glyph crops.

Input layout (any nesting depth):
  <glyphs>/<card>/<name>.png
  <glyphs>/<card>/<name>.json   {"label": "A", "card": "<card id>"}

Writes the descriptors file and model file to --descriptors/--model, or to the
first location the model store resolves when those are omitted.
"""

from __future__ import annotations

import argparse
import json
import logging
import sys
from pathlib import Path

from mrz_scan import (
    KernelOptions,
    ModelPaths,
    MrzScanError,
    create_model,
    load_training_samples,
)


def main() -> None:
    ap = argparse.ArgumentParser()
    ap.add_argument("glyphs", help="Directory of labelled glyph images")
    ap.add_argument("--descriptors", default=None, help="Descriptors output path")
    ap.add_argument("--model", default=None, help="Model output path")
    ap.add_argument(
        "--kernel",
        default="linear",
        choices=["linear", "gaussian", "polynomial", "sigmoid", "laplacian"],
    )
    ap.add_argument("--sigma", type=float, default=1.0)
    ap.add_argument("--degree", type=int, default=1)
    ap.add_argument(
        "--svm-options",
        default="{}",
        help='JSON object of estimator overrides, e.g. \'{"C": 10}\'',
    )
    ap.add_argument("--verbose", action="store_true", help="Verbose logging to stderr")
    args = ap.parse_args()

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(levelname)s %(name)s: %(message)s",
    )

    if (args.descriptors is None) != (args.model is None):
        raise SystemExit("--descriptors and --model must be given together")

    svm_options = json.loads(args.svm_options)
    if not isinstance(svm_options, dict):
        raise SystemExit("--svm-options must be a JSON object")

    paths = None
    if args.descriptors is not None:
        paths = ModelPaths(descriptors_path=args.descriptors, model_path=args.model)

    samples = load_training_samples(Path(args.glyphs))
    if not samples:
        raise SystemExit(f"No labelled glyphs found in {args.glyphs}")

    kernel_options = KernelOptions(
        type=args.kernel,
        sigma=args.sigma,
        degree=args.degree,
    )
    try:
        trained = create_model(
            samples,
            paths=paths,
            svm_options=svm_options,
            kernel_options=kernel_options,
        )
    except MrzScanError as exc:
        print(f"Training failed: {exc}", file=sys.stderr)
        sys.exit(1)

    labels = sorted({chr(sample.label) for sample in samples})
    print(
        f"Done. Trained {trained.training_mode.value} model on {len(samples)} "
        f"glyphs ({''.join(labels)})."
    )


if __name__ == "__main__":
    main()
