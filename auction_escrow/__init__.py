"""Escrow and settlement server for single-item ascending-price auctions."""
