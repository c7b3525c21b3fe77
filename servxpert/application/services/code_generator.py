import hashlib
import hmac
import secrets

CODE_LENGTH = 6


def generate_code(length: int = CODE_LENGTH) -> str:
    """Uniform random numeric code from the OS CSPRNG, zero padded."""
    return f"{secrets.randbelow(10 ** length):0{length}d}"


def hash_code(secret: str, destination: str, code: str) -> str:
    msg = "|".join([destination, code]).encode()
    return hmac.new(secret.encode(), msg, hashlib.sha256).hexdigest()


def codes_match(expected_hash: str, candidate_hash: str) -> bool:
    return hmac.compare_digest(expected_hash, candidate_hash)
