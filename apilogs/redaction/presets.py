"""Ready-made redactors for common sensitive fields.

Header names are matched lower-cased, which is how the middleware and
outbound transports capture them.
"""

from __future__ import annotations

from collections.abc import Iterable
from typing import Any

from .engine import DEFAULT_REPLACEMENT
from .redactors import DotNotationRedactor


class _PresetRedactor(DotNotationRedactor):
    """Dot-notation redactor with a built-in path list."""

    PATHS: tuple[str, ...] = ()

    def __init__(
        self,
        additional_paths: Iterable[str] | None = None,
        replacement: Any = DEFAULT_REPLACEMENT,
    ):
        super().__init__([*self.PATHS, *(additional_paths or [])], replacement)


class CommonHeaderFields(_PresetRedactor):
    """Credentials carried in request and response headers."""

    PATHS = (
        "request.headers.authorization",
        "request.headers.cookie",
        "request.headers.x-csrf-token",
        "request.headers.x-xsrf-token",
        "request.headers.x-api-key",
        "request.headers.x-auth-token",
        "response.headers.set-cookie",
        "response.headers.authorization",
        "response.headers.www-authenticate",
    )


class CommonBodyFields(_PresetRedactor):
    """Passwords, tokens and keys in request and response bodies."""

    PATHS = (
        "request.body.password",
        "request.body.password_confirmation",
        "request.body.token",
        "request.body.access_token",
        "request.body.refresh_token",
        "request.body.api_key",
        "request.body.secret",
        "request.body.private_key",
        "request.body.credentials",
        "request.body.auth_token",
        "response.body.password",
        "response.body.token",
        "response.body.access_token",
        "response.body.refresh_token",
        "response.body.api_key",
        "response.body.secret",
        "response.body.private_key",
        "response.body.credentials",
        "response.body.auth_token",
        # One level of nesting
        "request.body.*.password",
        "request.body.*.token",
        "request.body.*.api_key",
        "response.body.*.password",
        "response.body.*.token",
        "response.body.*.api_key",
    )


class PiiRedactor(_PresetRedactor):
    """Personally identifiable information at the top of a structure."""

    PATHS = (
        "ssn",
        "social_security_number",
        "socialSecurityNumber",
        "ein",
        "tax_id",
        "taxId",
        "driver_license",
        "driverLicense",
        "passport",
        "passport_number",
        "date_of_birth",
        "dateOfBirth",
        "dob",
        "birth_date",
        "birthDate",
        "phone",
        "phone_number",
        "phoneNumber",
        "mobile",
        "mobile_number",
        "email",
        "email_address",
        "address",
        "street_address",
        "home_address",
        "billing_address",
        "shipping_address",
        "personal.ssn",
        "personal.phone",
        "personal.email",
        "contact.phone",
        "contact.email",
        "user.email",
        "user.phone",
        "customer.email",
        "customer.phone",
        "users.*.email",
        "users.*.phone",
        "customers.*.email",
        "customers.*.phone",
    )


class PciRedactor(_PresetRedactor):
    """Payment card data, including cards nested at any depth."""

    PATHS = (
        "card_number",
        "cardNumber",
        "card.number",
        "payment.card_number",
        "payment.cardNumber",
        "card_cvv",
        "cardCvv",
        "cvv",
        "card.cvv",
        "payment.cvv",
        "card_expiry",
        "cardExpiry",
        "card.expiry",
        "payment.card_expiry",
        "expiry_date",
        "expiryDate",
        "card_holder",
        "cardHolder",
        "card.holder",
        "payment.card_holder",
        "pan",
        "primary_account_number",
        "track_data",
        "trackData",
        "magnetic_stripe",
        "chip_data",
        "pin",
        "payment.*.card_number",
        "payment.*.cvv",
        "cards.*.number",
        "cards.*.cvv",
        "**.card.number",
        "**.card.cvv",
        "**.card.expiry",
    )


class HipaaRedactor(_PresetRedactor):
    """Protected health information."""

    PATHS = (
        "patient_id",
        "patientId",
        "medical_record_number",
        "medicalRecordNumber",
        "mrn",
        "diagnosis",
        "condition",
        "medication",
        "treatment",
        "procedure",
        "lab_results",
        "labResults",
        "test_results",
        "testResults",
        "health_plan_id",
        "healthPlanId",
        "member_id",
        "memberId",
        "insurance_id",
        "insuranceId",
        "provider_id",
        "providerId",
        "npi",
        "national_provider_identifier",
        "medical_data",
        "medicalData",
        "health_data",
        "healthData",
        "phi",
        "protected_health_information",
        "patient.id",
        "patient.mrn",
        "patient.diagnosis",
        "patient.medication",
        "medical.patient_id",
        "medical.diagnosis",
        "medical.treatment",
        "health.patient_id",
        "health.condition",
        "patients.*.id",
        "patients.*.mrn",
        "patients.*.diagnosis",
        "medical_records.*.patient_id",
        "medical_records.*.diagnosis",
    )
