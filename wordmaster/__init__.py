"""WordMaster - SM-2 spaced repetition service for vocabulary learning."""

__version__ = "1.0.0"
