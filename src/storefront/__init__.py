"""Storefront back-office API: file-backed persistence, credential auth and order tracking."""
