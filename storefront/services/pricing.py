from storefront.config import settings


def next_bid_amount(current_bid: int, user_bid: int = 0) -> int:
    return max(current_bid, user_bid) + settings.BID_INCREMENT


def outbid_next_bid(new_bid: int, user_bid: int) -> int:
    return max(new_bid + settings.BID_INCREMENT, user_bid + settings.BID_INCREMENT)


def potential_savings(market_price: float, bid: int) -> float:
    """Market price minus the coins' cash value, never negative."""
    return max(0, market_price - bid * settings.COIN_VALUE)
