import secrets, string
ALPHABET = string.digits

def generate_code(length: int = 6) -> str:
    # Short numeric code players type on a phone keypad; never starts with 0
    return secrets.choice("123456789") + "".join(secrets.choice(ALPHABET) for _ in range(length - 1))
