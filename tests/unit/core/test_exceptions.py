# tests/unit/core/test_exceptions.py

from django.test import SimpleTestCase
from rest_framework import exceptions as drf_exceptions

from apps.core.exceptions import (GatewayFailure, InvalidTransition,
                                  OutOfStock, service_exception_handler)


class ServiceExceptionHandlerTests(SimpleTestCase):
    def test_service_error_envelope(self):
        response = service_exception_handler(
            OutOfStock("Only 2 left", details={"available_quantity": 2}), {}
        )

        self.assertEqual(response.status_code, 409)
        self.assertEqual(
            response.data,
            {
                "error": "Only 2 left",
                "code": "OUT_OF_STOCK",
                "details": {"available_quantity": 2},
            },
        )

    def test_details_omitted_when_empty(self):
        response = service_exception_handler(InvalidTransition("Nope"), {})
        self.assertEqual(response.data, {"error": "Nope", "code": "INVALID_TRANSITION"})

    def test_gateway_failure_is_bad_gateway(self):
        response = service_exception_handler(GatewayFailure("Gateway down"), {})
        self.assertEqual(response.status_code, 502)
        self.assertEqual(response.data["code"], "GATEWAY_ERROR")

    def test_drf_validation_error_wrapped(self):
        response = service_exception_handler(
            drf_exceptions.ValidationError({"method": ["Invalid choice."]}), {}
        )
        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.data["code"], "VALIDATION_ERROR")
        self.assertEqual(response.data["details"], {"method": ["Invalid choice."]})

    def test_unauthenticated_code(self):
        response = service_exception_handler(drf_exceptions.NotAuthenticated(), {})
        self.assertEqual(response.status_code, 401)
        self.assertEqual(response.data["code"], "UNAUTHORIZED")
