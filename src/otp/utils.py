# src/otp/utils.py
import secrets

OTP_LENGTH = 6


def generate_otp(length: int = OTP_LENGTH) -> str:
    return f"{secrets.randbelow(10**length):0{length}d}"
