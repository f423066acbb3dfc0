from fastapi import Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from typing import Callable, Optional


class APIException(Exception):
    """ Base class for all exceptions raised by the discount API. """

    error_code = "INTERNAL_ERROR"
    reason = "INTERNAL_ERROR"
    default_detail = "Something went wrong."

    def __init__(self, detail: Optional[str] = None):
        self.detail = detail or self.default_detail
        super().__init__(self.detail)


# ---------------------------------------------------------------------------
# Authentication
# ---------------------------------------------------------------------------

class InvalidTokenException(APIException):
    """ Exception is thrown when user provided an expired invalid token. """
    error_code = "UNAUTHORIZED"
    reason = "INVALID_TOKEN"
    default_detail = "Invalid or expired token provided!"


class AccessTokenRequiredException(APIException):
    """ Exception is raised when a request to a protected resource carries no access token. """
    error_code = "UNAUTHORIZED"
    reason = "TOKEN_REQUIRED"
    default_detail = "Authentication required!"


class PermissionRequiredException(APIException):
    """ Exception is thrown when a user does not have permission to peform the current action or access an endpoint/resource. """
    error_code = "FORBIDDEN"
    reason = "PERMISSION_REQUIRED"
    default_detail = "You don't have permission to access this resource."


# ---------------------------------------------------------------------------
# NotFound
# ---------------------------------------------------------------------------

class ResourceNotFoundException(APIException):
    """ A code, order or rule does not exist, is soft-deleted or is not owned by the caller. """
    error_code = "NOT_FOUND"
    reason = "NOT_FOUND"
    default_detail = "Resource not found."


class OrderNotFoundException(ResourceNotFoundException):
    reason = "ORDER_NOT_FOUND"
    default_detail = "Order not found."


class VoucherNotFoundException(ResourceNotFoundException):
    reason = "VOUCHER_NOT_FOUND"
    default_detail = "Voucher not found."


class PromotionNotFoundException(ResourceNotFoundException):
    reason = "PROMOTION_NOT_FOUND"
    default_detail = "Promotion not found."


class DiscountNotFoundException(ResourceNotFoundException):
    """ The discount code is not applied to the order. """
    reason = "DISCOUNT_NOT_FOUND"
    default_detail = "Discount not found on this order."


class CodeNotFoundException(ResourceNotFoundException):
    """ Neither a voucher nor a promotion exists with the given code. """
    reason = "CODE_NOT_FOUND"
    default_detail = "No voucher or promotion exists with this code."


# ---------------------------------------------------------------------------
# InvalidInput
# ---------------------------------------------------------------------------

class InvalidInputException(APIException):
    error_code = "INVALID_INPUT"
    reason = "INVALID_INPUT"
    default_detail = "Invalid input."


class InvalidDiscountValueException(InvalidInputException):
    reason = "INVALID_DISCOUNT_VALUE"
    default_detail = "Percentage discount cannot exceed 100."


class InvalidExpirationDateException(InvalidInputException):
    reason = "INVALID_EXPIRATION_DATE"
    default_detail = "Expiration date must be in the future."


class MissingEligibilityCriteriaException(InvalidInputException):
    reason = "MISSING_ELIGIBILITY_CRITERIA"
    default_detail = "At least one eligibility criterion (categories or items) must be specified."


class RequiredFieldException(InvalidInputException):
    """ An update tried to clear a field that must always have a value. """
    reason = "REQUIRED_FIELD"
    default_detail = "This field cannot be null."


class ImmutableCodeException(InvalidInputException):
    reason = "IMMUTABLE_CODE"
    default_detail = "Discount codes cannot be updated."


# ---------------------------------------------------------------------------
# Conflict
# ---------------------------------------------------------------------------

class ConflictException(APIException):
    error_code = "CONFLICT"
    reason = "CONFLICT"
    default_detail = "Resource already exists."


class DuplicateCodeException(ConflictException):
    """ A voucher or promotion with the same code already exists. """
    reason = "DUPLICATE_CODE"
    default_detail = "A rule with this code already exists."


class DuplicateDiscountException(ConflictException):
    """ The code has already been applied to the order. """
    reason = "DUPLICATE_DISCOUNT"
    default_detail = "This discount code has already been applied to the order."


class VersionConflictException(ConflictException):
    """ The record was modified by another request after it was read. """
    reason = "VERSION_CONFLICT"
    default_detail = "The record was updated by another process. Please try again."


# ---------------------------------------------------------------------------
# InvalidState
# ---------------------------------------------------------------------------

class InvalidStateException(APIException):
    error_code = "INVALID_STATE"
    reason = "INVALID_STATE"
    default_detail = "The operation is not allowed in the current state."


class OrderNotPendingException(InvalidStateException):
    reason = "ORDER_NOT_PENDING"
    default_detail = "Discounts can only be changed on pending orders."


class OrderNotCancellableException(InvalidStateException):
    reason = "ORDER_NOT_CANCELLABLE"
    default_detail = "Only pending orders can be cancelled."


class RuleInUseException(InvalidStateException):
    reason = "RULE_IN_USE"
    default_detail = "Cannot delete a rule that has been used."


# ---------------------------------------------------------------------------
# RuleUnusable
# ---------------------------------------------------------------------------

class RuleUnusableException(APIException):
    """ The rule exists but cannot be applied to this order. """
    error_code = "RULE_UNUSABLE"
    reason = "RULE_UNUSABLE"
    default_detail = "This discount code cannot be used."


class RuleInactiveException(RuleUnusableException):
    reason = "INACTIVE"
    default_detail = "This discount code is not active."


class RuleExpiredException(RuleUnusableException):
    reason = "EXPIRED"
    default_detail = "This discount code has expired."


class UsageLimitReachedException(RuleUnusableException):
    reason = "USAGE_LIMIT_REACHED"
    default_detail = "This discount code has reached its usage limit."


class BelowMinimumOrderException(RuleUnusableException):
    reason = "BELOW_MIN_ORDER"
    default_detail = "Order value is below the minimum required for this voucher."


class NoEligibleItemsException(RuleUnusableException):
    reason = "NO_ELIGIBLE_ITEMS"
    default_detail = "No items in this order are eligible for this promotion."


class ZeroDiscountException(RuleUnusableException):
    """ The discount rounds to nothing on this order. """
    reason = "ZERO_DISCOUNT"
    default_detail = "This discount code gives no discount on this order."


# ---------------------------------------------------------------------------
# CapExhausted
# ---------------------------------------------------------------------------

class DiscountCapReachedException(APIException):
    error_code = "CAP_EXHAUSTED"
    reason = "DISCOUNT_CAP_REACHED"
    default_detail = "Maximum discount cap has been reached."


def create_exception_handler(status_code: int) -> Callable[[Request, Exception], JSONResponse]:
    async def exception_handler(request: Request, exception: APIException):
        return JSONResponse(
            content={
                "detail": exception.detail,
                "error_code": exception.error_code,
                "reason": exception.reason,
            },
            status_code=status_code
        )

    return exception_handler


async def validation_exception_handler(request: Request, exception: RequestValidationError):
    return JSONResponse(
        content={
            "detail": jsonable_errors(exception),
            "error_code": InvalidInputException.error_code,
            "reason": "VALIDATION_ERROR",
        },
        status_code=422
    )


def jsonable_errors(exception: RequestValidationError) -> list:
    # pydantic error contexts may hold exception instances
    return [
        {"loc": list(error.get("loc", ())), "msg": error.get("msg"), "type": error.get("type")}
        for error in exception.errors()
    ]
