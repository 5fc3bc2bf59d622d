def description_with_price(description, price_info) -> str:
    """Append the price disclosure to a tool description."""
    base = (description or "").strip()
    cost = (
        f"This is a paid function: {price_info['amount']} {price_info['currency']}.\n"
        "Payment will be requested during execution."
    )
    return f"{base}\n\n{cost}" if base else cost


def payment_prompt_message(url, amount, currency) -> str:
    return f"To continue, please pay {amount} {currency} at:\n{url}"
