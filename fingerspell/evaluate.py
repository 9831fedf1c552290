"""
evaluate.py
===========
Cross-validated evaluation of the trainable classifier on a training store.

Generates:
  1. Per-class accuracy table (log)
  2. Confusion matrix heatmap     (<report_dir>/confusion_matrix.png)
  3. Per-class accuracy bar chart (<report_dir>/per_class_accuracy.png)
"""

import logging
from pathlib import Path

import numpy as np
import matplotlib
matplotlib.use('Agg')  # non-interactive backend, saves to file
import matplotlib.pyplot as plt
from matplotlib.colors import LinearSegmentedColormap

from sklearn.metrics import confusion_matrix
from sklearn.model_selection import StratifiedKFold

from fingerspell.classifier import LandmarkClassifier
from fingerspell.config import MIN_TRAINING_SAMPLES, RANDOM_STATE
from fingerspell.errors import InsufficientDataError

log = logging.getLogger(__name__)

# Letters that are easy to confuse with each other.
SIMILAR_PAIRS = [('C', 'O'), ('A', 'S'), ('D', 'L'), ('U', 'V'), ('M', 'N')]


def cross_val_evaluate(store, n_splits=5, random_state=RANDOM_STATE, **fit_kwargs):
    """
    Stratified k-fold over the store's samples. Returns (y_true, y_pred,
    fold_accuracies) with labels as strings.
    """
    features, labels, label_index = store.snapshot()
    X = np.array(features)
    y = np.array(labels)

    _, counts = np.unique(y, return_counts=True) if len(y) else ([], np.array([0]))
    n_splits = min(n_splits, int(counts.min()))
    if len(y) < MIN_TRAINING_SAMPLES or n_splits < 2:
        raise InsufficientDataError(
            "Cross-validation needs at least 10 samples and 2 samples of every label")

    skf = StratifiedKFold(n_splits=n_splits, shuffle=True, random_state=random_state)
    all_true, all_pred, fold_accs = [], [], []

    log.info("[EVAL] Running %d-fold cross-validation on %d samples", n_splits, len(y))
    for fold, (train_idx, test_idx) in enumerate(skf.split(X, y), 1):
        samples = list(zip(X[train_idx], y[train_idx]))
        if len(samples) < MIN_TRAINING_SAMPLES:
            raise InsufficientDataError(f"Fold {fold} has only {len(samples)} training samples")
        clf = LandmarkClassifier.fit(samples, label_index=label_index,
                                     random_state=random_state, **fit_kwargs)
        preds = [clf.predict(x)[0] for x in X[test_idx]]
        acc = float(np.mean(np.array(preds) == y[test_idx]))
        fold_accs.append(acc)
        log.info("  Fold %d: %.1f%%", fold, acc * 100)
        all_true.extend(y[test_idx])
        all_pred.extend(preds)

    log.info("[EVAL] CV Accuracy: %.1f%% ± %.1f%%",
             np.mean(fold_accs) * 100, np.std(fold_accs) * 100)
    return np.array(all_true), np.array(all_pred), fold_accs


def per_class_accuracy(y_true, y_pred, classes):
    """Return dict of letter → accuracy."""
    results = {}
    for cls in classes:
        mask = y_true == cls
        results[cls] = float((y_pred[mask] == cls).mean()) if mask.any() else 0.0
    return results


def log_per_class_table(class_acc):
    similar_letters = {l for pair in SIMILAR_PAIRS for l in pair}
    log.info("  %-8s %9s  %s", 'Letter', 'Accuracy', 'Note')
    for cls, acc in class_acc.items():
        note = ''
        if acc < 0.85:
            note = 'LOW'
        elif cls in similar_letters:
            others = [c for p in SIMILAR_PAIRS if cls in p for c in p if c != cls]
            note = f'similar to {", ".join(others)}'
        log.info("  %-8s %8.1f%%  %s", cls, acc * 100, note)


def plot_confusion_matrix(y_true, y_pred, classes, out_path):
    cm = confusion_matrix(y_true, y_pred, labels=classes)
    totals = cm.sum(axis=1, keepdims=True)
    cm_norm = np.divide(cm.astype(float), totals, out=np.zeros(cm.shape), where=totals > 0)

    cmap = LinearSegmentedColormap.from_list('asl', ['#ffffff', '#4f46e5'])
    fig, ax = plt.subplots(figsize=(max(4, len(classes) * 0.6 + 2),) * 2)
    im = ax.imshow(cm_norm, cmap=cmap, vmin=0, vmax=1)
    plt.colorbar(im, ax=ax, fraction=0.046, pad=0.04)

    ax.set_xticks(range(len(classes)))
    ax.set_yticks(range(len(classes)))
    ax.set_xticklabels(classes)
    ax.set_yticklabels(classes)
    ax.set_xlabel('Predicted Letter')
    ax.set_ylabel('True Letter')
    ax.set_title('Confusion Matrix: ASL Fingerspelling')

    for i in range(len(classes)):
        for j in range(len(classes)):
            val = cm_norm[i, j]
            if val > 0.02:
                ax.text(j, i, f'{val:.0%}', ha='center', va='center', fontsize=7,
                        color='white' if val > 0.5 else '#1e1b4b')

    fig.tight_layout()
    fig.savefig(out_path, dpi=120, bbox_inches='tight')
    plt.close(fig)
    log.info("  Saved → %s", out_path)


def plot_per_class_accuracy(class_acc, out_path):
    classes = list(class_acc)
    accs = [class_acc[c] for c in classes]
    colors = ['#ef4444' if a < 0.85 else '#f59e0b' if a < 0.95 else '#22c55e' for a in accs]

    fig, ax = plt.subplots(figsize=(max(6, len(classes) * 0.5 + 2), 4))
    ax.bar(classes, accs, color=colors)
    ax.axhline(0.85, color='#ef4444', linewidth=1.2, linestyle='--', label='85% threshold')
    ax.set_ylim(0, 1.05)
    ax.set_xlabel('Letter')
    ax.set_ylabel('Accuracy')
    ax.set_title('Per-Class Accuracy')
    ax.legend(fontsize=8)

    fig.tight_layout()
    fig.savefig(out_path, dpi=120)
    plt.close(fig)
    log.info("  Saved → %s", out_path)


def evaluate(store, report_dir, n_splits=5, plots=True, **fit_kwargs):
    """Run cross-validation and write the report plots. Returns a summary dict."""
    y_true, y_pred, fold_accs = cross_val_evaluate(store, n_splits=n_splits, **fit_kwargs)
    classes = store.label_index.labels
    class_acc = per_class_accuracy(y_true, y_pred, classes)
    log_per_class_table(class_acc)

    files = {}
    if plots:
        report_dir = Path(report_dir)
        report_dir.mkdir(parents=True, exist_ok=True)
        files['confusion_matrix'] = report_dir / 'confusion_matrix.png'
        files['per_class_accuracy'] = report_dir / 'per_class_accuracy.png'
        plot_confusion_matrix(y_true, y_pred, classes, files['confusion_matrix'])
        plot_per_class_accuracy(class_acc, files['per_class_accuracy'])

    return {
        'mean_accuracy'     : float(np.mean(fold_accs)),
        'std_accuracy'      : float(np.std(fold_accs)),
        'fold_accuracies'   : fold_accs,
        'per_class_accuracy': class_acc,
        'files'             : files,
    }
