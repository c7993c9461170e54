"""Generation of the ``dsid`` anti-cache token.

The API rejects requests that do not carry a ``dsid`` both as a cookie and
as a query parameter.  The value is eight hexadecimal characters, four in
lower case and four in upper case, in random order.
"""

import random

_HEX_DIGITS = "0123456789abcdef"
_NONCE_LENGTH = 8


class NonceGenerator:
    """Produces a fresh ``dsid`` value on every call.

    Args:
        rng: Random source.  Defaults to :class:`random.SystemRandom`;
            pass a seeded :class:`random.Random` for reproducible output.
    """

    def __init__(self, rng: random.Random | None = None):
        self._rng = rng or random.SystemRandom()

    def generate(self) -> str:
        """Return a new 8-character nonce."""
        half = _NONCE_LENGTH // 2
        chars = [self._rng.choice(_HEX_DIGITS) for _ in range(_NONCE_LENGTH)]
        chars[half:] = [c.upper() for c in chars[half:]]
        self._rng.shuffle(chars)
        return "".join(chars)


_default = NonceGenerator()


def generate_dsid() -> str:
    """Return a new nonce from the process-wide generator."""
    return _default.generate()
