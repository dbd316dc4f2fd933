"""Linked confidential-trade settlement.

Binds a seller's and a bidder's join-split proofs into one trade, checks the
bidder's EIP-712 style signature over the exact terms, and executes both
confidential transfers atomically.
"""
