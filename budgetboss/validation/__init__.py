"""Validation package."""

from budgetboss.validation.validator import KNOWN_ACCOUNTS, BudgetValidator

__all__ = ["BudgetValidator", "KNOWN_ACCOUNTS"]
