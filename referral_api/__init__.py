"""
HTTP surface of the referral service.
"""
