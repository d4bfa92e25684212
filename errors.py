# errors.py
from flask import Response


class BillingError(Exception):
    status_code = 400
    message = "Bad request"

    def __init__(self, message=None):
        super().__init__(message or self.message)
        if message:
            self.message = message


class ReadingDecreasedError(BillingError):
    message = "End reading must be greater than or equal to start reading"


class MissingStartReadingError(BillingError):
    message = "Start reading is required: no reading on file for the previous month"


class InvalidPeriodError(BillingError):
    message = "Period must be in YYYYMM format"


class InsufficientDataError(BillingError):
    message = "Missing meter reading or tariff for this month"


def _text(message, status):
    return Response(message, status=status, mimetype="text/plain")


def register_error_handlers(app):
    @app.errorhandler(BillingError)
    def billing_error(e):
        return _text(e.message, e.status_code)

    @app.errorhandler(404)
    def not_found(e):
        return _text(getattr(e, "description", None) or "Not found", 404)

    @app.errorhandler(400)
    def bad_request(e):
        return _text(getattr(e, "description", None) or "Bad request", 400)
