"""Pricing helpers."""


def apply_tax(amount, rate=0.2):
    return amount * (1 + rate)


def total_price(cart):
    subtotal = sum(item["price"] for item in cart)
    return apply_tax(subtotal)
