"""JSON API for the mail client UI."""

import logging
import time

from flask import Flask, g, jsonify, request
from werkzeug.exceptions import HTTPException

from threadmail import errors
from threadmail.errors import ServiceError
from threadmail.service import MailService
from threadmail.validation import (
    CreateMessageInput,
    DeleteThreadQuery,
    ListQuery,
    RestoreThreadInput,
    UpdateMessageInput,
    validate,
)

logger = logging.getLogger(__name__)


def _json_body():
    """Parse the request body as JSON, raising INVALID_JSON on failure."""
    data = request.get_json(silent=True)
    if data is None:
        raise errors.invalid_json()
    return data


def create_app(
    service: MailService,
    verbose: bool = False,
    page_size: int = 20,
) -> Flask:
    """Create the Flask application.

    Args:
        service: MailService backing every route
        verbose: Print per-request timing lines
        page_size: Default page size when the client sends none

    Returns:
        Flask application
    """
    app = Flask(__name__)
    app.config["service"] = service
    app.config["verbose"] = verbose
    app.config["page_size"] = page_size

    if verbose:
        @app.before_request
        def before_request():
            g.start_time = time.time()

        @app.after_request
        def after_request(response):
            if hasattr(g, "start_time"):
                elapsed = time.time() - g.start_time
                print(f"[{request.method}] {request.full_path.rstrip('?')} - {elapsed:.3f}s", flush=True)
            return response

    @app.errorhandler(ServiceError)
    def handle_service_error(e: ServiceError):
        return jsonify(e.to_dict()), e.status_code

    @app.errorhandler(HTTPException)
    def handle_http_error(e: HTTPException):
        code = "NOT_FOUND" if e.code == 404 else (e.name or "HTTP_ERROR").upper().replace(" ", "_")
        return jsonify({"error": e.description, "code": code}), e.code

    @app.errorhandler(Exception)
    def handle_unexpected(e: Exception):
        logger.exception("[API Error] %s", e)
        return jsonify(errors.internal().to_dict()), 500

    @app.route("/api/emails", methods=["GET"])
    def list_emails():
        query = validate(ListQuery, request.args.to_dict(), "Invalid query parameters")
        result = service.list_messages(query.to_options(app.config["page_size"]))
        return jsonify(result.to_dict())

    @app.route("/api/emails", methods=["POST"])
    def create_email():
        data = validate(CreateMessageInput, _json_body())
        message = service.create_message(data)
        return jsonify(message.to_dict()), 201

    @app.route("/api/emails/threads", methods=["GET"])
    def thread_counts():
        return jsonify(service.get_thread_counts().to_dict())

    @app.route("/api/emails/<int:email_id>", methods=["GET"])
    def get_email(email_id: int):
        message = service.get_message(email_id)
        if message is None:
            raise errors.not_found("Email")
        return jsonify(message.to_dict())

    @app.route("/api/emails/<int:email_id>", methods=["PATCH"])
    def update_email(email_id: int):
        data = validate(UpdateMessageInput, _json_body(), "Invalid request body")
        message = service.update_message(email_id, data)
        if message is None:
            raise errors.not_found("Email")
        return jsonify(message.to_dict())

    @app.route("/api/emails/<int:email_id>", methods=["DELETE"])
    def delete_email(email_id: int):
        if not service.delete_message(email_id):
            raise errors.not_found("Email")
        return jsonify({"success": True})

    @app.route("/api/emails/thread/<thread_id>", methods=["DELETE"])
    def delete_thread(thread_id: str):
        query = validate(DeleteThreadQuery, request.args.to_dict(), "Invalid query parameters")
        if query.is_permanent:
            success = service.permanently_delete_thread(thread_id)
        else:
            success = service.delete_thread(thread_id)
        if not success:
            raise errors.not_found("Thread")
        return jsonify({"success": True})

    @app.route("/api/emails/thread/<thread_id>", methods=["PATCH"])
    def restore_thread(thread_id: str):
        validate(RestoreThreadInput, _json_body(), "Invalid request body")
        if not service.restore_thread(thread_id):
            raise errors.not_found("Thread")
        return jsonify({"threadId": thread_id, "restored": True})

    return app


def run_server(
    service: MailService,
    host: str = "127.0.0.1",
    port: int = 8080,
    debug: bool = False,
    verbose: bool = False,
    page_size: int = 20,
) -> None:
    """Run the web server.

    Args:
        service: MailService instance
        host: Host to bind to
        port: Port to listen on
        debug: Enable debug mode
        verbose: Enable request timing logs
        page_size: Default number of results per page
    """
    app = create_app(service, verbose=verbose, page_size=page_size)

    print("\n📬 threadmail API")
    print(f"   Running at: http://{host}:{port}/api/emails")
    print(f"   Database: {service.db.db_path}")
    print(f"   Full-text search: {'on' if service.db.fts_available() else 'off (substring fallback)'}")
    if verbose:
        print("   Verbose logging enabled")
    print("   Press Ctrl+C to stop\n")

    app.run(host=host, port=port, debug=debug)
