import time
from datetime import datetime
from flask import Flask, jsonify, g
from sqlalchemy import text
from config import Config
from extensions import cors, db
from flowgraph import EditorRegistry


def create_app(config_class=Config):
    app = Flask(__name__)
    app.config.from_object(config_class)
    app.logger.setLevel(app.config["LOG_LEVEL"])

    db.init_app(app)
    cors.init_app(app, expose_headers=["X-Total-Count", "X-Request-Time", "X-API-Version"])

    # One live graph per open flow, owned by this app instance
    app.extensions["flow_editor"] = EditorRegistry(
        logger=app.logger, max_open=app.config["MAX_OPEN_FLOWS"]
    )

    from routes.editor import editor_bp
    from routes.flows import flows_bp
    app.register_blueprint(flows_bp)
    app.register_blueprint(editor_bp)

    _register_hooks(app)
    _register_error_handlers(app)

    @app.get("/health")
    def health():
        try:
            db.session.execute(text("SELECT 1"))
            db_ok = True
        except Exception:
            app.logger.exception("Health check database ping failed")
            db_ok = False
        return jsonify({
            "status": "ok" if db_ok else "degraded",
            "database": "connected" if db_ok else "error",
            "open_flows": len(app.extensions["flow_editor"]),
            "timestamp": datetime.utcnow().isoformat(),
            "version": app.config["API_VERSION"],
        })

    with app.app_context():
        db.create_all()

    return app


# ─── REQUEST HOOKS ────────────────────────────────────────

def _register_hooks(app):
    @app.before_request
    def start_timer():
        g.start_time = time.time()

    @app.after_request
    def add_headers(response):
        if hasattr(g, "start_time"):
            elapsed = round((time.time() - g.start_time) * 1000, 2)
            response.headers["X-Request-Time"] = f"{elapsed}ms"
        response.headers["X-API-Version"] = app.config["API_VERSION"]
        return response


# ─── ERROR HANDLERS ───────────────────────────────────────

def _register_error_handlers(app):
    @app.errorhandler(404)
    def not_found(e):
        return jsonify({"error": "Resource not found"}), 404

    @app.errorhandler(405)
    def method_not_allowed(e):
        return jsonify({"error": "Method not allowed"}), 405

    @app.errorhandler(500)
    def server_error(e):
        return jsonify({"error": "Internal server error"}), 500


if __name__ == "__main__":
    create_app().run(host="0.0.0.0", port=5000, debug=True)
