"""
Access token CLI tool for Slotbook.

Issues and verifies access tokens signed with the server's JWT secret, so a
local server can be exercised without the identity provider:
- issue: Print a signed token for a user id
- verify: Print the user id a token resolves to

Usage:
    slotbook-token issue user_123 --days 7
    slotbook-token verify <token>

Invariants:
    - Uses SLOTBOOK_JWT_SECRET / SLOTBOOK_JWT_ALGORITHM, like the server
    - A token that fails verification gives exit code 1
"""

from __future__ import annotations

import argparse
import sys
from datetime import timedelta

from ..api.auth import JwtIdentityVerifier
from ..config import Settings
from ..errors import ForbiddenError


class TokenCLI:
    """CLI tool for development access tokens.

    Example:
        >>> cli = TokenCLI(JwtIdentityVerifier("secret"))
        >>> token = cli.issue("user_1", days=1)
        >>> cli.verify(token)
        0
    """

    def __init__(self, verifier: JwtIdentityVerifier) -> None:
        self.verifier = verifier

    def issue(self, user_id: str, days: float = 7) -> str:
        """Create a token for ``user_id`` valid for ``days``."""
        return self.verifier.issue_token(user_id, expires_in=timedelta(days=days))

    def verify(self, token: str) -> int:
        """Print the token's user id.

        Returns:
            Exit code (0 = valid, 1 = rejected)
        """
        try:
            user_id = self.verifier.verify(token)
        except ForbiddenError:
            print("Token rejected", file=sys.stderr)
            return 1
        print(user_id)
        return 0


def main() -> None:
    """CLI entry point."""
    parser = argparse.ArgumentParser(description="Slotbook access token tool")
    subparsers = parser.add_subparsers(dest="command", required=True)

    issue_parser = subparsers.add_parser("issue", help="Issue a token for a user id")
    issue_parser.add_argument("user_id", help="User id to embed in the token")
    issue_parser.add_argument("--days", type=float, default=7, help="Validity in days")

    verify_parser = subparsers.add_parser("verify", help="Verify a token")
    verify_parser.add_argument("token", help="Token to verify")

    args = parser.parse_args()

    settings = Settings()
    cli = TokenCLI(JwtIdentityVerifier(settings.jwt_secret, settings.jwt_algorithm))

    if args.command == "issue":
        print(cli.issue(args.user_id, days=args.days))
        sys.exit(0)
    sys.exit(cli.verify(args.token))


if __name__ == "__main__":
    main()
