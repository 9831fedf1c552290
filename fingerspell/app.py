"""
Fingerspell Backend
===================
Flask + Flask-SocketIO backend exposing the recognizer:
  - ASL letter prediction from landmarks (REST + Socket.IO)
  - Sample capture sessions for one letter at a time
  - Background model training with completion events
  - Model save / load / clear
"""

import logging
from pathlib import Path

import numpy as np
from flask import Flask, jsonify, request
from flask_cors import CORS
from flask_socketio import SocketIO, emit

from fingerspell import config
from fingerspell.errors import (
    FingerspellError, InsufficientDataError, MalformedMetadataError,
    MissingArtifactError, NoHandDetected, TrainingDiscarded, TrainingFailure,
    TrainingInProgressError,
)
from fingerspell.features import extract_features
from fingerspell.session import FingerspellSession

log = logging.getLogger(__name__)

_STATUS_CODES = {
    InsufficientDataError  : 400,
    MalformedMetadataError : 400,
    MissingArtifactError   : 400,
    NoHandDetected         : 422,
    TrainingInProgressError: 409,
    TrainingDiscarded      : 409,
    TrainingFailure        : 500,
}


def _features_from_payload(data):
    """Features from {'landmarks': [...21 points...]} or a ready {'features': [...]}."""
    data = data or {}
    if data.get('features') is not None:
        features = data['features']
        if not isinstance(features, (list, tuple)) or len(features) != config.FEATURE_DIM:
            return None
        arr = np.array(features, dtype=np.float64)
        return arr if np.all(np.isfinite(arr)) else None
    landmarks = data.get('landmarks')
    if not landmarks or not isinstance(landmarks, (list, tuple)):
        return None
    try:
        features = extract_features(landmarks)
    except (TypeError, ValueError, IndexError, KeyError):
        return None
    if features is None or not np.all(np.isfinite(features)):
        return None
    return features


def _prediction_payload(session, result):
    return {
        'letter'    : result['letter'] if result else None,
        'confidence': result['confidence'] if result else 0.0,
        'word'      : session.get_spelled_word(),
        'training'  : session.training.status(),
    }


def create_app(session=None, model_dir=None):
    """
    Build the Flask app; the Socket.IO server is app.extensions['socketio'].

    Models are only ever saved to and loaded from model_dir (default
    config.MODEL_DIR); clients cannot name paths or upload model files.
    """
    app = Flask(__name__)
    CORS(app, resources={r"/*": {"origins": "*"}})
    socketio = SocketIO(app, cors_allowed_origins="*", async_mode='threading')

    def _capture_complete(label, count):
        socketio.emit('capture-complete', {'label': label, 'count': count})

    if session is None:
        session = FingerspellSession(on_capture_complete=_capture_complete)
    elif session.training.on_complete is None:
        session.training.on_complete = _capture_complete

    recognizer = session.recognizer
    app.config['FINGERSPELL_SESSION'] = session
    app.config['FINGERSPELL_MODEL_DIR'] = Path(model_dir or config.MODEL_DIR)

    # ==================================================================
    # Errors
    # ==================================================================

    @app.errorhandler(FingerspellError)
    def handle_core_error(e):
        status = _STATUS_CODES.get(type(e), 400)
        return jsonify({'error': str(e), 'type': type(e).__name__}), status

    @app.errorhandler(ValueError)
    def handle_value_error(e):
        return jsonify({'error': str(e), 'type': 'ValueError'}), 400

    # ==================================================================
    # Status
    # ==================================================================

    @app.route('/health', methods=['GET'])
    def health():
        return jsonify({'status': 'ok', 'model': recognizer.get_status()})

    @app.route('/stats', methods=['GET'])
    def stats():
        return jsonify(session.get_stats())

    @app.route('/training/stats', methods=['GET'])
    def training_stats():
        return jsonify(session.get_training_stats())

    @app.route('/history', methods=['GET'])
    def history():
        return jsonify({'items': session.history.items(), 'word': session.get_spelled_word()})

    @app.route('/history/clear', methods=['POST'])
    def clear_history():
        session.clear_history()
        return jsonify({'success': True})

    # ==================================================================
    # Prediction
    # ==================================================================

    @app.route('/predict_landmarks', methods=['POST'])
    def predict_landmarks():
        features = _features_from_payload(request.get_json(silent=True))
        if features is None:
            return jsonify(_prediction_payload(session, session.process_frame(None)))
        result = session.process_features(features)
        return jsonify(_prediction_payload(session, result))

    # ==================================================================
    # Sample capture
    # ==================================================================

    @app.route('/training/start', methods=['POST'])
    def start_training():
        data = request.get_json(silent=True) or {}
        session.training.start_training(data.get('label'))
        return jsonify(session.training.status())

    @app.route('/training/stop', methods=['POST'])
    def stop_training():
        session.training.stop_training()
        return jsonify({**session.training.status(), 'stats': session.get_training_stats()})

    @app.route('/training/capture', methods=['POST'])
    def capture():
        features = _features_from_payload(request.get_json(silent=True))
        captured = session.training.capture_sample(features)
        return jsonify({'captured': captured, **session.training.status()})

    @app.route('/training/capture_current', methods=['POST'])
    def capture_current():
        data = request.get_json(silent=True) or {}
        session.capture_current(data.get('label'))
        return jsonify({'captured': True, 'stats': session.get_training_stats()})

    # ==================================================================
    # Model
    # ==================================================================

    @app.route('/train', methods=['POST'])
    def train():
        data = request.get_json(silent=True) or {}

        def _done(classifier):
            socketio.emit('training-complete', classifier.summary())

        def _failed(error):
            socketio.emit('training-failed', {'error': str(error), 'type': type(error).__name__})

        future = recognizer.train_async(on_complete=_done, on_error=_failed)
        if data.get('wait'):
            classifier = future.result()
            return jsonify({'success': True, 'model': classifier.summary()})
        return jsonify({'success': True, 'started': True}), 202

    @app.route('/model/save', methods=['POST'])
    def save_model():
        paths = recognizer.save_model(app.config['FINGERSPELL_MODEL_DIR'])
        return jsonify({'success': True, 'files': {k: str(v) for k, v in paths.items()}})

    @app.route('/model/load', methods=['POST'])
    def load_model():
        # Model files are pickles; only the server's own model directory is trusted.
        if request.files:
            return jsonify({'error': 'Model uploads are not accepted',
                            'type': 'UploadRejected'}), 400
        classifier = recognizer.load_model_dir(app.config['FINGERSPELL_MODEL_DIR'])
        return jsonify({'success': True, 'model': classifier.summary(),
                        'stats': session.get_training_stats()})

    @app.route('/model/clear', methods=['POST'])
    def clear_model():
        session.training.stop_training()
        recognizer.clear()
        return jsonify({'success': True})

    # ==================================================================
    # Socket.IO
    # ==================================================================

    @socketio.on('connect')
    def on_connect():
        log.info("[WS] Connected: %s", request.sid)

    @socketio.on('disconnect')
    def on_disconnect(*args):
        log.info("[WS] Disconnected: %s", request.sid)

    @socketio.on('landmarks')
    def on_landmarks(data):
        """One detection per frame: a hand's landmarks, or null for no hand."""
        features = _features_from_payload(data)
        if features is None:
            result = session.process_frame(None)
        else:
            result = session.process_features(features)
        emit('prediction', _prediction_payload(session, result))

    return app


def run(host=config.HOST, port=config.PORT):
    app = create_app()
    socketio = app.extensions['socketio']
    status = 'Trained' if app.config['FINGERSPELL_SESSION'].recognizer.model else 'Untrained (rule-based only)'
    log.info("[SERVER] Fingerspell backend on http://%s:%d | Model: %s", host, port, status)
    socketio.run(app, debug=False, host=host, port=port, allow_unsafe_werkzeug=True)
