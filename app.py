# app.py
import hmac
import logging
import os

from flask import Flask, abort, jsonify, request

from wikinotif.config import get_settings
from wikinotif.hooks import HOOKS, on_registration, run_hook

logging.basicConfig(
    level=os.getenv("LOG_LEVEL", "INFO").upper(),
    format="%(asctime)s | %(levelname)s | %(name)s | %(message)s",
)
LOGGER = logging.getLogger(__name__)

app = Flask(__name__)

TOKEN_HEADER = "X-WikiNotif-Token"

on_registration(get_settings())


def check_token():
    expected = get_settings().hook_token
    if not expected:
        return
    supplied = request.headers.get(TOKEN_HEADER, "")
    if not hmac.compare_digest(supplied.encode("utf-8"), expected.encode("utf-8")):
        LOGGER.warning("Rejected hook call from %s: bad token", request.remote_addr)
        abort(403)


def _hook_args(name: str, payload: dict):
    user = payload.get("user")
    if not user:
        return None
    if name == "LocalUserCreated":
        return (user, bool(payload.get("autocreated")))
    page = payload.get("page")
    if not page:
        return None
    tags = payload.get("tags")
    return (
        page,
        payload.get("rev_id"),
        payload.get("original_rev_id"),
        user,
        tags if isinstance(tags, list) else [],
    )


# ------------------------------- Routes -------------------------------
@app.route("/health")
def health():
    return jsonify({"ok": True})


@app.route("/hooks/<name>", methods=["POST"])
def receive_hook(name: str):
    check_token()
    if name not in HOOKS:
        return jsonify({"error": "Unknown hook"}), 404

    payload = request.get_json(silent=True) or {}
    if not isinstance(payload, dict):
        return jsonify({"error": "Missing user or page"}), 400
    args = _hook_args(name, payload)
    if args is None:
        return jsonify({"error": "Missing user or page"}), 400

    result = run_hook(name, *args)
    response = {"ok": True}
    if isinstance(result, int) and not isinstance(result, bool):
        response["dispatched"] = result
    return jsonify(response)


if __name__ == "__main__":
    app.run(host=os.getenv("HOST", "127.0.0.1"), port=int(os.getenv("PORT", "8080")))
