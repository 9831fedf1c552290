"""
Command-line entry point.

Usage:
  fingerspell serve                          # run the backend
  fingerspell train metadata.json --out DIR  # fit a model on saved samples
  fingerspell evaluate metadata.json         # cross-validate + report plots
  fingerspell stats metadata.json            # samples per letter
  fingerspell predict IMAGE... [--model DIR] # letters in photos (needs [camera])
"""

import argparse
import json
import logging
import sys

from fingerspell import config
from fingerspell.errors import FingerspellError
from fingerspell.features import extract_features
from fingerspell.recognizer import GestureRecognizer
from fingerspell.training_data import TrainingDataStore

log = logging.getLogger('fingerspell')


def _load_store(path):
    with open(path, 'r', encoding='utf-8') as f:
        return TrainingDataStore.from_serialized(json.load(f))


def cmd_serve(args):
    from fingerspell.app import run
    run(host=args.host, port=args.port)
    return 0


def cmd_train(args):
    recognizer = GestureRecognizer(store=_load_store(args.metadata))
    classifier = recognizer.train()
    recognizer.save_model(args.out)
    acc = classifier.validation_accuracy
    log.info("[TRAIN] Done | %d samples | val acc: %s", classifier.n_samples,
             f"{acc:.1%}" if acc is not None else 'n/a')
    return 0


def cmd_evaluate(args):
    from fingerspell.evaluate import evaluate
    summary = evaluate(_load_store(args.metadata), args.report_dir,
                       n_splits=args.folds, plots=not args.no_plots)
    log.info("[EVAL] Mean accuracy %.1f%%", summary['mean_accuracy'] * 100)
    return 0


def cmd_stats(args):
    stats = _load_store(args.metadata).stats()
    for letter in sorted(stats):
        print(f"{letter}: {stats[letter]}")
    print(f"Total: {sum(stats.values())}")
    return 0


def _read_image(path):
    import cv2
    frame = cv2.imread(str(path))
    if frame is None:
        raise OSError(f"Could not read image: {path}")
    return frame


def cmd_predict(args):
    from fingerspell.detector import detect_landmarks

    recognizer = GestureRecognizer()
    if args.model:
        recognizer.load_model_dir(args.model)
    for path in args.images:
        landmarks = detect_landmarks(_read_image(path))
        if landmarks is None:
            print(f"{path}: no hand")
            continue
        result = recognizer.predict(extract_features(landmarks))
        if result is None:
            print(f"{path}: no letter")
        else:
            print(f"{path}: {result[0]} ({result[1]:.2f})")
    return 0


def build_parser():
    parser = argparse.ArgumentParser(prog='fingerspell', description='ASL fingerspelling recognizer')
    parser.add_argument('-v', '--verbose', action='store_true', help='Debug logging')
    sub = parser.add_subparsers(dest='command', required=True)

    p = sub.add_parser('serve', help='Run the Flask/Socket.IO backend')
    p.add_argument('--host', default=config.HOST)
    p.add_argument('--port', type=int, default=config.PORT)
    p.set_defaults(func=cmd_serve)

    p = sub.add_parser('train', help='Train a model from a saved metadata.json')
    p.add_argument('metadata')
    p.add_argument('--out', default=str(config.MODEL_DIR), help='Directory for the three model files')
    p.set_defaults(func=cmd_train)

    p = sub.add_parser('evaluate', help='Cross-validate the classifier on saved samples')
    p.add_argument('metadata')
    p.add_argument('--report-dir', default=str(config.REPORT_DIR))
    p.add_argument('--folds', type=int, default=5)
    p.add_argument('--no-plots', action='store_true')
    p.set_defaults(func=cmd_evaluate)

    p = sub.add_parser('stats', help='Samples per letter in a metadata.json')
    p.add_argument('metadata')
    p.set_defaults(func=cmd_stats)

    p = sub.add_parser('predict', help='Detect a hand in each image and print its letter')
    p.add_argument('images', nargs='+')
    p.add_argument('--model', help='Directory holding a saved model (default: rules only)')
    p.set_defaults(func=cmd_predict)
    return parser


def main(argv=None):
    args = build_parser().parse_args(argv)
    logging.basicConfig(level=logging.DEBUG if args.verbose else logging.INFO,
                        format='[%(levelname)s] %(message)s')
    try:
        return args.func(args)
    except (FingerspellError, OSError, json.JSONDecodeError) as e:
        log.error("[ERROR] %s", e)
        return 1


if __name__ == '__main__':
    sys.exit(main())
