from fastapi import HTTPException, status


class AuthenticationError(HTTPException):
    """Exception raised for authentication failures."""

    def __init__(self, message: str = "Authentication failed"):
        super().__init__(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=message,
            headers={"WWW-Authenticate": "Bearer"}
        )


class AuthServiceUnavailableError(HTTPException):
    """Exception raised when the auth provider SDK is not initialized."""

    def __init__(self, message: str = "Authentication service not configured"):
        super().__init__(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=message
        )


class BillingError(HTTPException):
    """
    Exception raised by the checkout and portal endpoints.

    Rendered as {"error": message} so the frontend can show it in a toast.
    """

    def __init__(self, message: str, status_code: int = status.HTTP_400_BAD_REQUEST):
        super().__init__(status_code=status_code, detail=message)


class BillingCustomerNotFoundError(BillingError):
    """Exception raised when a user has no Stripe customer on file."""

    def __init__(self, status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR):
        super().__init__(
            "Could not find Stripe customer ID for this user.",
            status_code=status_code
        )


class WebhookVerificationError(HTTPException):
    """Exception raised when a webhook body cannot be authenticated or parsed."""

    def __init__(self, message: str = "Invalid signature"):
        super().__init__(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=message
        )


class WebhookConfigurationError(HTTPException):
    """Exception raised when strict verification is on but no secret is set."""

    def __init__(self, message: str = "Webhook secret not configured"):
        super().__init__(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=message
        )


class CustomerNotFoundError(Exception):
    """Raised when a Stripe customer cannot be mapped to a user."""

    def __init__(self, customer_id: str = None):
        self.customer_id = customer_id
        super().__init__(f"No user found for Stripe customer {customer_id}")
