# admin_password_hash.py
# Prints a bcrypt hash for ADMIN_PASSWORD_HASH.
#   python admin_password_hash.py
import getpass
import sys

from app.utils.auth import hash_password


def main(prompt=getpass.getpass, out=sys.stdout) -> int:
    password = prompt("Admin password: ")
    if not password:
        print("Password must not be empty.", file=sys.stderr)
        return 1
    if password != prompt("Repeat password: "):
        print("Passwords do not match.", file=sys.stderr)
        return 1

    print(f"ADMIN_PASSWORD_HASH={hash_password(password)}", file=out)
    return 0


if __name__ == "__main__":
    sys.exit(main())
