from flask import Blueprint, jsonify

index_bp = Blueprint("index", __name__)


@index_bp.route("/")
def index():
    return jsonify({"message": "Climbing competition scoring API"})


@index_bp.route("/health")
def health():
    return jsonify({"status": "healthy"})
