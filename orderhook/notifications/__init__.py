"""Customer notifications (order confirmation email)."""
