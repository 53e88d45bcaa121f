"""User-store key encoding"""

# Realtime Database keys may not contain ".", so emails are stored with "," instead.


def encode_email_key(email: str) -> str:
    return email.strip().replace(".", ",")


def decode_email_key(key: str) -> str:
    return key.replace(",", ".")
