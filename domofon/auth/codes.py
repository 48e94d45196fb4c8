"""One-time numeric code generation."""

import secrets

DEFAULT_CODE_LENGTH = 4
MIN_CODE_LENGTH = 4
MAX_CODE_LENGTH = 6


class CodeGenerator:
    """
    Produces fixed-width numeric codes from the OS CSPRNG.

    Codes are uniform over [0, 10**length) and zero padded, so "0042"
    is as likely as "4821".
    """

    def __init__(self, length: int = DEFAULT_CODE_LENGTH):
        if not MIN_CODE_LENGTH <= length <= MAX_CODE_LENGTH:
            raise ValueError(
                f"Code length must be between {MIN_CODE_LENGTH} and {MAX_CODE_LENGTH}, got {length}"
            )
        self.length = length

    def generate(self) -> str:
        """Return a new code of exactly ``length`` digits."""
        return f"{secrets.randbelow(10 ** self.length):0{self.length}d}"
