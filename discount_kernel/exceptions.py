"""
Typed Exception Hierarchy for the Discount Kernel.

===============================================================================
WHAT RAISES AND WHAT RETURNS
===============================================================================

Discount decisions distinguish two kinds of failure:

  1. VALIDATION OUTCOMES -- an invalid or exhausted promo code, insufficient
     loyalty points, an inactive program, a customer who is not enrolled.
     These are ordinary business answers.  They are returned as typed result
     values carrying a human-readable ``reason`` and are NEVER raised.

  2. INFRASTRUCTURE / CONFIGURATION FAILURES -- malformed stored
     configuration, a missing record the caller asserted exists, an illegal
     approval transition.  These raise the exceptions defined here.

Every exception has a CODE class attribute (machine-readable, API-safe) and
carries its context as structured attributes rather than in the message.

===============================================================================
EXCEPTION HIERARCHY
===============================================================================

    DiscountKernelError (base)
    |
    +-- ConfigurationError
    |   +-- InvalidTierTableError
    |   +-- InvalidBracketPartitionError
    |   +-- MalformedRuleConditionError
    |   +-- InvalidDiscountValueError
    |
    +-- NotFoundError
    |   +-- DiscountCodeNotFoundError
    |   +-- AutoRuleNotFoundError
    |   +-- CampaignNotFoundError
    |   +-- LoyaltyProgramNotFoundError
    |   +-- LoyaltyAccountNotFoundError
    |   +-- ApprovalRequestNotFoundError
    |
    +-- DuplicateError
    |   +-- DuplicateDiscountCodeError
    |   +-- AlreadyEnrolledError
    |
    +-- ApprovalError
    |   +-- ApprovalAlreadyResolvedError
    |   +-- InvalidApprovalTransitionError
    |   +-- InvalidReviewError
    |
    +-- LedgerError
        +-- LedgerInvariantError

===============================================================================
ERROR CODES - QUICK REFERENCE
===============================================================================

Category        | Code                          | When Raised
----------------|-------------------------------|-----------------------------------
Configuration   | INVALID_TIER_TABLE            | Loyalty tiers unordered / gapped
                | INVALID_BRACKET_PARTITION     | Volume brackets overlap or gap
                | MALFORMED_RULE_CONDITION      | Known rule tag, unusable payload
                | INVALID_DISCOUNT_VALUE        | Negative value, bad percent
----------------|-------------------------------|-----------------------------------
Not found       | DISCOUNT_CODE_NOT_FOUND       | Code id does not exist
                | AUTO_RULE_NOT_FOUND           | Rule id does not exist
                | CAMPAIGN_NOT_FOUND            | Campaign id does not exist
                | LOYALTY_PROGRAM_NOT_FOUND     | Org has no program configured
                | LOYALTY_ACCOUNT_NOT_FOUND     | Customer has no account
                | APPROVAL_REQUEST_NOT_FOUND    | Request id does not exist
----------------|-------------------------------|-----------------------------------
Duplicate       | DUPLICATE_DISCOUNT_CODE       | Code already exists in org
                | ALREADY_ENROLLED              | Customer already has an account
----------------|-------------------------------|-----------------------------------
Approval        | APPROVAL_ALREADY_RESOLVED     | Acting on a terminal request
                | INVALID_APPROVAL_TRANSITION   | Transition not in the table
                | INVALID_REVIEW                | Counter offer without terms
----------------|-------------------------------|-----------------------------------
Ledger          | LEDGER_INVARIANT_VIOLATION    | Stored balance disagrees with
                |                               | the transaction history
"""


class DiscountKernelError(Exception):
    """
    Base exception for all discount kernel errors.

    All subclasses must have a `code` class attribute for machine-readable
    error identification.
    """

    code: str = "DISCOUNT_KERNEL_ERROR"


# Configuration exceptions


class ConfigurationError(DiscountKernelError):
    """Stored or supplied configuration is malformed."""

    code: str = "CONFIGURATION_ERROR"


class InvalidTierTableError(ConfigurationError):
    """Loyalty tier table has a gap, a bad floor, or non-increasing thresholds."""

    code: str = "INVALID_TIER_TABLE"

    def __init__(self, program_name: str, detail: str):
        self.program_name = program_name
        self.detail = detail
        super().__init__(f"Invalid tier table for {program_name}: {detail}")


class InvalidBracketPartitionError(ConfigurationError):
    """Volume tier brackets do not partition the value space."""

    code: str = "INVALID_BRACKET_PARTITION"

    def __init__(self, tier_set_name: str, detail: str):
        self.tier_set_name = tier_set_name
        self.detail = detail
        super().__init__(
            f"Volume tier set '{tier_set_name}' is not a partition: {detail}"
        )


class MalformedRuleConditionError(ConfigurationError):
    """A recognized rule tag carries a payload missing required fields."""

    code: str = "MALFORMED_RULE_CONDITION"

    def __init__(self, rule_type: str, detail: str):
        self.rule_type = rule_type
        self.detail = detail
        super().__init__(f"Malformed '{rule_type}' condition: {detail}")


class InvalidDiscountValueError(ConfigurationError):
    """Discount value is negative or a percent outside 0..100."""

    code: str = "INVALID_DISCOUNT_VALUE"

    def __init__(self, discount_type: str, value: str):
        self.discount_type = discount_type
        self.value = value
        super().__init__(f"Invalid {discount_type} discount value: {value}")


# Not-found exceptions


class NotFoundError(DiscountKernelError):
    """Base exception for missing records."""

    code: str = "NOT_FOUND"


class DiscountCodeNotFoundError(NotFoundError):
    """Discount code with given ID was not found."""

    code: str = "DISCOUNT_CODE_NOT_FOUND"

    def __init__(self, code_id: str):
        self.code_id = code_id
        super().__init__(f"Discount code not found: {code_id}")


class AutoRuleNotFoundError(NotFoundError):
    """Automatic discount rule with given ID was not found."""

    code: str = "AUTO_RULE_NOT_FOUND"

    def __init__(self, rule_id: str):
        self.rule_id = rule_id
        super().__init__(f"Automatic discount rule not found: {rule_id}")


class CampaignNotFoundError(NotFoundError):
    """Seasonal campaign with given ID was not found."""

    code: str = "CAMPAIGN_NOT_FOUND"

    def __init__(self, campaign_id: str):
        self.campaign_id = campaign_id
        super().__init__(f"Seasonal campaign not found: {campaign_id}")


class LoyaltyProgramNotFoundError(NotFoundError):
    """Organization has no loyalty program configured."""

    code: str = "LOYALTY_PROGRAM_NOT_FOUND"

    def __init__(self, org_id: str):
        self.org_id = org_id
        super().__init__(f"No loyalty program configured for org {org_id}")


class LoyaltyAccountNotFoundError(NotFoundError):
    """Customer has no loyalty account."""

    code: str = "LOYALTY_ACCOUNT_NOT_FOUND"

    def __init__(self, org_id: str, customer_id: str):
        self.org_id = org_id
        self.customer_id = customer_id
        super().__init__(
            f"Customer {customer_id} is not enrolled in org {org_id}"
        )


class ApprovalRequestNotFoundError(NotFoundError):
    """Approval request with given ID was not found."""

    code: str = "APPROVAL_REQUEST_NOT_FOUND"

    def __init__(self, request_id: str):
        self.request_id = request_id
        super().__init__(f"Approval request not found: {request_id}")


# Duplicate exceptions


class DuplicateError(DiscountKernelError):
    """Base exception for uniqueness violations."""

    code: str = "DUPLICATE"


class DuplicateDiscountCodeError(DuplicateError):
    """A code with the same (case-insensitive) text already exists in the org."""

    code: str = "DUPLICATE_DISCOUNT_CODE"

    def __init__(self, org_id: str, discount_code: str):
        self.org_id = org_id
        self.discount_code = discount_code
        super().__init__(
            f"Discount code {discount_code} already exists in org {org_id}"
        )


class AlreadyEnrolledError(DuplicateError):
    """Customer already has a loyalty account."""

    code: str = "ALREADY_ENROLLED"

    def __init__(self, org_id: str, customer_id: str):
        self.org_id = org_id
        self.customer_id = customer_id
        super().__init__(
            f"Customer {customer_id} is already enrolled in org {org_id}"
        )


# Approval exceptions


class ApprovalError(DiscountKernelError):
    """Base exception for approval lifecycle errors."""

    code: str = "APPROVAL_ERROR"


class ApprovalAlreadyResolvedError(ApprovalError):
    """Request is in a terminal state and cannot change."""

    code: str = "APPROVAL_ALREADY_RESOLVED"

    def __init__(self, request_id: str, status: str):
        self.request_id = request_id
        self.status = status
        super().__init__(
            f"Approval request {request_id} is already {status}"
        )


class InvalidApprovalTransitionError(ApprovalError):
    """Requested status change is not allowed by the lifecycle table."""

    code: str = "INVALID_APPROVAL_TRANSITION"

    def __init__(self, from_status: str, to_status: str):
        self.from_status = from_status
        self.to_status = to_status
        super().__init__(
            f"Invalid approval transition: {from_status} -> {to_status}"
        )


class InvalidReviewError(ApprovalError):
    """Review input is inconsistent (e.g. counter offer without terms)."""

    code: str = "INVALID_REVIEW"

    def __init__(self, request_id: str, detail: str):
        self.request_id = request_id
        self.detail = detail
        super().__init__(f"Invalid review for {request_id}: {detail}")


# Ledger exceptions


class LedgerError(DiscountKernelError):
    """Base exception for loyalty ledger errors."""

    code: str = "LEDGER_ERROR"


class LedgerInvariantError(LedgerError):
    """Stored balance disagrees with the transaction history."""

    code: str = "LEDGER_INVARIANT_VIOLATION"

    def __init__(self, account_id: str, detail: str):
        self.account_id = account_id
        self.detail = detail
        super().__init__(
            f"Ledger invariant violated for account {account_id}: {detail}"
        )
