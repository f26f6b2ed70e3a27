"""Token factory used at manager construction."""

from typing import Dict, List, Optional

from ...config.constants import DEFAULT_SYNTHETIC_DECIMALS
from ..types import Address
from .token import ExpandedToken


class TokenFactory:
    """Creates synthetic tokens and grants the caller minter and burner roles."""

    def __init__(self):
        self._tokens: Dict[str, ExpandedToken] = {}

    @property
    def tokens(self) -> List[ExpandedToken]:
        return list(self._tokens.values())

    def create_token(
        self,
        name: str,
        symbol: str,
        decimals: int = DEFAULT_SYNTHETIC_DECIMALS,
        owner: Optional[Address] = None,
    ) -> ExpandedToken:
        """
        Create a token owned by `owner`.

        The owner is made minter and burner so the creating manager can
        mint on create and burn on redeem.

        Raises:
            ValueError: Symbol already created by this factory
        """
        if symbol in self._tokens:
            raise ValueError(f"token {symbol} already exists")
        token = ExpandedToken(name, symbol, decimals, owner=owner)
        if owner is not None:
            token.add_minter(owner, caller=owner)
            token.add_burner(owner, caller=owner)
        self._tokens[symbol] = token
        return token
