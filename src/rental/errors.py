from typing import List, Optional


class RentEasyError(Exception):
    """
    Base of every error the rental domain raises.
    The message is meant to be shown to the user as is.
    """


class ValidationError(RentEasyError):
    pass


class MissingRentalDatesError(ValidationError):
    def __init__(self, message: str = "Please select rental dates"):
        super().__init__(message)


class CheckoutValidationError(ValidationError):
    def __init__(self, fields: List[str]):
        self.fields = list(fields)
        super().__init__("Please complete: " + ", ".join(self.fields))


class LastOrderLineError(ValidationError):
    def __init__(self):
        super().__init__("A rental order needs at least one order line.")


class CouponNotFoundError(RentEasyError):
    def __init__(self, code: str):
        self.code = code
        super().__init__(f"Coupon {code} not found.")


class PermissionDeniedError(RentEasyError):
    pass


class InvalidTransitionError(RentEasyError):
    def __init__(self, current: str, requested: str, subject: Optional[str] = None):
        self.current = current
        self.requested = requested
        subject = subject or "status"
        super().__init__(
            f"{subject[0].upper()}{subject[1:]} cannot move from '{current}' to '{requested}'."
        )


class OrderNotFoundError(RentEasyError):
    def __init__(self, order_id: str):
        self.order_id = order_id
        super().__init__(f"Order {order_id} not found.")


class ProductNotFoundError(RentEasyError):
    def __init__(self, pid: int):
        self.pid = pid
        super().__init__(f"Product {pid} not found.")
