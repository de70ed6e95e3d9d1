# gateway/security/tokens.py
# Bearer token allow-list.
# - TOKEN_LIST is a comma-separated list of accepted tokens.
# - Unset or empty list disables the check: every presented token is accepted.
# - Entries are taken verbatim: no whitespace trimming, exact match only.
#   "   " is one token of three spaces; ",," holds no tokens and accepts nothing.

from __future__ import annotations

import hmac
from dataclasses import dataclass
from typing import Optional, Tuple


@dataclass(frozen=True)
class TokenSet:
    tokens: Tuple[str, ...]

    @classmethod
    def parse(cls, raw: Optional[str]) -> Optional["TokenSet"]:
        if not raw:
            return None
        return cls(tuple(part for part in raw.split(",") if part))

    def __contains__(self, token: object) -> bool:
        if not isinstance(token, str):
            return False
        presented = token.encode("utf-8")
        return any(hmac.compare_digest(presented, t.encode("utf-8")) for t in self.tokens)

    def __len__(self) -> int:
        return len(self.tokens)


def validate_token(token: str, token_list: Optional[str]) -> bool:
    """Accept ``token`` iff ``token_list`` is unset or contains it exactly."""
    tokens = TokenSet.parse(token_list)
    return tokens is None or token in tokens
