"""Print a signed access token for a doctor or patient to stdout.

Login lives outside this service; operators use this to hand out tokens.

Usage:
    python -m backend.issue_token --subject <id> --role doctor|patient [--expires-minutes N]
"""
import argparse

from backend.auth import jwt_handler
from backend.auth.dependencies import Role


def main(argv: list[str] | None = None) -> None:
    parser = argparse.ArgumentParser(description="Issue a bearer token for the scheduling API.")
    parser.add_argument("--subject", required=True, help="Doctor or patient id")
    parser.add_argument("--role", required=True, choices=[role.value for role in Role])
    parser.add_argument("--expires-minutes", type=int, default=None)
    args = parser.parse_args(argv)

    print(jwt_handler.create_access_token(args.subject, args.role, expires_minutes=args.expires_minutes))


if __name__ == "__main__":
    main()
