from email_verifier.db.models.verification import VerificationCode

__all__ = ["VerificationCode"]
