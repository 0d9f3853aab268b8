"""Discount resolution engine: status, eligibility, amounts, stacking and cart pricing."""
