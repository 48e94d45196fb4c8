"""
domofon: phone verification and credential lifecycle backend.

Registration, phone/password login, SMS-gated password reset and
refresh-token rotation on top of a relational store.
"""

__version__ = "0.1.0"
