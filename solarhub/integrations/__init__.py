"""solarhub.integrations — External service gateway modules.

All outbound HTTP calls (currently the OCR date-extraction endpoint) go
through a gateway in this package, never via bare `requests` calls in
services or blueprints.
"""
