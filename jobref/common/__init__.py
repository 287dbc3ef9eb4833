"""Shared configuration, logging, errors and types for the referral service."""
