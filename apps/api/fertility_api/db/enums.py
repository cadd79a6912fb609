"""Enum definitions for application constants."""

from enum import Enum


class Role(str, Enum):
    """
    User roles. Role is the only authorization signal and is only ever
    compared for equality.
    """

    ADMIN = "admin"
    STAFF = "staff"
    PROVIDER = "provider"
    PATIENT = "patient"


class PackageTier(str, Enum):
    BASIC = "basic"
    PREMIUM = "premium"
    CUSTOM = "custom"


class BenefitSource(str, Enum):
    """Who pays for the patient's treatment benefit."""

    EMPLOYER_OR_PLAN = "employer_or_plan"
    PARTNER_OR_PARENT = "partner_or_parent"
    NONE = "none"


class BenefitStatus(str, Enum):
    VERIFIED = "verified"
    DECLINED = "declined"
    NOT_APPLICABLE = "not_applicable"
    NOT_STARTED = "not_started"


class VerificationStatus(str, Enum):
    PENDING = "pending"
    SUCCESS = "success"
    FAILED = "failed"


class WizardStep(str, Enum):
    """Benefit verification wizard steps, in order."""

    BENEFIT_SOURCE = "benefit_source"
    ORGANIZATION_SEARCH = "organization_search"
    PERSONAL_INFORMATION = "personal_information"
    WORK_EMAIL = "work_email"
    PACKAGE_SELECTION = "package_selection"


class AppointmentStatus(str, Enum):
    SCHEDULED = "scheduled"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    PENDING = "pending"
    CONFIRMED = "confirmed"


class ActivityStatus(str, Enum):
    SUCCESS = "SUCCESS"
    FAILURE = "FAILURE"
    ATTEMPT = "ATTEMPT"
    INFO = "INFO"


class ActivityActionType(str, Enum):
    """
    Activity log action tags.

    Every failure mode gets its own tag so logs can be filtered by it:
    - *_VALIDATION_FAILED: request payload rejected
    - *_DUPLICATE: uniqueness conflict
    - *_NOT_FOUND: referenced row missing
    - *_FAILED: unexpected store/processor failure
    """

    # Organizations
    ORGANIZATION_CREATE = "ORGANIZATION_CREATE"
    ORGANIZATION_CREATE_VALIDATION_FAILED = "ORGANIZATION_CREATE_VALIDATION_FAILED"
    ORGANIZATION_CREATE_DUPLICATE = "ORGANIZATION_CREATE_DUPLICATE"
    ORGANIZATION_CREATE_FAILED = "ORGANIZATION_CREATE_FAILED"
    ORGANIZATION_UPDATE = "ORGANIZATION_UPDATE"
    ORGANIZATION_UPDATE_VALIDATION_FAILED = "ORGANIZATION_UPDATE_VALIDATION_FAILED"
    ORGANIZATION_UPDATE_NOT_FOUND = "ORGANIZATION_UPDATE_NOT_FOUND"
    ORGANIZATION_UPDATE_DUPLICATE = "ORGANIZATION_UPDATE_DUPLICATE"
    ORGANIZATION_UPDATE_FAILED = "ORGANIZATION_UPDATE_FAILED"
    ORGANIZATION_DELETE = "ORGANIZATION_DELETE"
    ORGANIZATION_DELETE_NOT_FOUND = "ORGANIZATION_DELETE_NOT_FOUND"
    ORGANIZATION_DELETE_CONFLICT = "ORGANIZATION_DELETE_CONFLICT"
    ORGANIZATION_DELETE_FAILED = "ORGANIZATION_DELETE_FAILED"

    # Approved emails
    APPROVED_EMAIL_ADD = "APPROVED_EMAIL_ADD"
    APPROVED_EMAIL_ADD_VALIDATION_FAILED = "APPROVED_EMAIL_ADD_VALIDATION_FAILED"
    APPROVED_EMAIL_ADD_DUPLICATE = "APPROVED_EMAIL_ADD_DUPLICATE"
    APPROVED_EMAIL_ADD_NOT_FOUND = "APPROVED_EMAIL_ADD_NOT_FOUND"
    APPROVED_EMAIL_ADD_FAILED = "APPROVED_EMAIL_ADD_FAILED"
    APPROVED_EMAIL_DELETE = "APPROVED_EMAIL_DELETE"
    APPROVED_EMAIL_DELETE_VALIDATION_FAILED = "APPROVED_EMAIL_DELETE_VALIDATION_FAILED"
    APPROVED_EMAIL_DELETE_NOT_FOUND = "APPROVED_EMAIL_DELETE_NOT_FOUND"
    APPROVED_EMAIL_DELETE_FAILED = "APPROVED_EMAIL_DELETE_FAILED"

    # Packages
    PACKAGE_CREATE = "PACKAGE_CREATE"
    PACKAGE_CREATE_VALIDATION_FAILED = "PACKAGE_CREATE_VALIDATION_FAILED"
    PACKAGE_CREATE_NOT_FOUND = "PACKAGE_CREATE_NOT_FOUND"
    PACKAGE_CREATE_FAILED = "PACKAGE_CREATE_FAILED"
    PACKAGE_UPDATE = "PACKAGE_UPDATE"
    PACKAGE_UPDATE_VALIDATION_FAILED = "PACKAGE_UPDATE_VALIDATION_FAILED"
    PACKAGE_UPDATE_NOT_FOUND = "PACKAGE_UPDATE_NOT_FOUND"
    PACKAGE_UPDATE_FAILED = "PACKAGE_UPDATE_FAILED"
    PACKAGE_DELETE = "PACKAGE_DELETE"
    PACKAGE_DELETE_NOT_FOUND = "PACKAGE_DELETE_NOT_FOUND"
    PACKAGE_DELETE_FAILED = "PACKAGE_DELETE_FAILED"

    # Users
    USER_CREATE = "USER_CREATE"
    USER_CREATE_VALIDATION_FAILED = "USER_CREATE_VALIDATION_FAILED"
    USER_CREATE_DUPLICATE = "USER_CREATE_DUPLICATE"
    USER_CREATE_FAILED = "USER_CREATE_FAILED"
    USER_UPDATE = "USER_UPDATE"
    USER_UPDATE_VALIDATION_FAILED = "USER_UPDATE_VALIDATION_FAILED"
    USER_UPDATE_NOT_FOUND = "USER_UPDATE_NOT_FOUND"
    USER_UPDATE_FAILED = "USER_UPDATE_FAILED"
    USER_DELETE = "USER_DELETE"
    USER_DELETE_NOT_FOUND = "USER_DELETE_NOT_FOUND"
    USER_DELETE_FAILED = "USER_DELETE_FAILED"
    ROLE_UPDATE = "ROLE_UPDATE"
    ROLE_UPDATE_VALIDATION_FAILED = "ROLE_UPDATE_VALIDATION_FAILED"
    ROLE_UPDATE_NOT_FOUND = "ROLE_UPDATE_NOT_FOUND"
    ROLE_UPDATE_FAILED = "ROLE_UPDATE_FAILED"
    USER_SYNC = "USER_SYNC"
    USER_SYNC_CONFLICT = "USER_SYNC_CONFLICT"

    # Benefit verification
    BENEFIT_SESSION_START = "BENEFIT_SESSION_START"
    BENEFIT_SOURCE_UPDATE = "BENEFIT_SOURCE_UPDATE"
    BENEFIT_SOURCE_UPDATE_FAILED = "BENEFIT_SOURCE_UPDATE_FAILED"
    SPONSORING_ORGANIZATION_UPDATE = "SPONSORING_ORGANIZATION_UPDATE"
    SPONSORING_ORGANIZATION_UPDATE_NOT_FOUND = "SPONSORING_ORGANIZATION_UPDATE_NOT_FOUND"
    SPONSORING_ORGANIZATION_UPDATE_FAILED = "SPONSORING_ORGANIZATION_UPDATE_FAILED"
    PERSONAL_INFORMATION_SUBMIT = "PERSONAL_INFORMATION_SUBMIT"
    PERSONAL_INFORMATION_SUBMIT_VALIDATION_FAILED = "PERSONAL_INFORMATION_SUBMIT_VALIDATION_FAILED"
    PERSONAL_INFORMATION_SUBMIT_FAILED = "PERSONAL_INFORMATION_SUBMIT_FAILED"
    BENEFIT_VERIFICATION = "BENEFIT_VERIFICATION"
    BENEFIT_VERIFICATION_VALIDATION_FAILED = "BENEFIT_VERIFICATION_VALIDATION_FAILED"
    BENEFIT_VERIFICATION_FAILED = "BENEFIT_VERIFICATION_FAILED"
    PACKAGE_SELECT = "PACKAGE_SELECT"
    PACKAGE_SELECT_NOT_FOUND = "PACKAGE_SELECT_NOT_FOUND"
    PACKAGE_SELECT_FAILED = "PACKAGE_SELECT_FAILED"
    BENEFIT_SETUP_COMPLETE = "BENEFIT_SETUP_COMPLETE"
    BENEFIT_SETUP_COMPLETE_FAILED = "BENEFIT_SETUP_COMPLETE_FAILED"

    # Payments
    PAYMENT_INTENT_CREATE = "PAYMENT_INTENT_CREATE"
    PAYMENT_INTENT_CREATE_VALIDATION_FAILED = "PAYMENT_INTENT_CREATE_VALIDATION_FAILED"
    PAYMENT_INTENT_CREATE_NOT_FOUND = "PAYMENT_INTENT_CREATE_NOT_FOUND"
    PAYMENT_INTENT_CREATE_FAILED = "PAYMENT_INTENT_CREATE_FAILED"
    PAYMENT_AMOUNT_MISMATCH = "PAYMENT_AMOUNT_MISMATCH"
    PAYMENT_CUSTOMER_CREATE = "PAYMENT_CUSTOMER_CREATE"
    SUBSCRIPTION_CREATE = "SUBSCRIPTION_CREATE"
    SUBSCRIPTION_CREATE_FAILED = "SUBSCRIPTION_CREATE_FAILED"
    PAYMENT_METHOD_ATTACH = "PAYMENT_METHOD_ATTACH"
    PAYMENT_METHOD_DEFAULT = "PAYMENT_METHOD_DEFAULT"
    PAYMENT_METHOD_DETACH = "PAYMENT_METHOD_DETACH"
    PAYMENT_METHOD_FAILED = "PAYMENT_METHOD_FAILED"
